from stratum.cli import main

raise SystemExit(main())
