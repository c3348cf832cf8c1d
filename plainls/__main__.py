"""
Executed when running: python -m plainls
"""
from plainls.main import main

if __name__ == "__main__":
    main()
