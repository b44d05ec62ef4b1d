import sys

from gmat_bot.launcher import main

sys.exit(main())
