from webarchivum.cli.main import main

raise SystemExit(main())
