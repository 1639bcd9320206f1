import sys

from claude_docs_mirror.cli import main

sys.exit(main())
