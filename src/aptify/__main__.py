from aptify.apt.cli import main

raise SystemExit(main())
