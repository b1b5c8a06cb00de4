import sys

from threads_shell._cli import main

sys.exit(main())
