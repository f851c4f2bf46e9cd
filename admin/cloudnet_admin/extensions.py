import re

# CSI/ESC sequences as emitted by colored console output.
ANSI_ESCAPE = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

# Filter choices offered by the console page; anything else is still accepted
# as a free-text ContainsLevel filter.
LEVEL_FILTERS = ('ALL', 'INFO', 'WARN', 'ERROR')

EXPORT_FILENAME = 'console-logs.txt'
