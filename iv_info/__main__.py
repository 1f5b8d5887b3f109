"""python -m iv_info"""

from .plugin_main import main

if __name__ == '__main__':
    main()
