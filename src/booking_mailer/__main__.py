from booking_mailer.main import main

raise SystemExit(main())
