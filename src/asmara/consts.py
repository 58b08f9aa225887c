APP_NAME = "asmara"
VERSION = "0.3.0"
