"""
SpeedWatch Entry Point

Run the server as a module:
    python -m speedwatch --config speedwatch/config.json

Property of Uncompromising Sensors LLC.
"""

from .main import main

if __name__ == '__main__':
    main()
