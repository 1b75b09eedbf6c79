from atm.cli import main

raise SystemExit(main())
