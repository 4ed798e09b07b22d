import sys

from meetbot.daemon import main

sys.exit(main())
