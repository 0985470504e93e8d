import sys

from storyshorts.cli import main

sys.exit(main())
