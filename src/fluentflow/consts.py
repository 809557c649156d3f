VERSION = "1.2.0"

APP_NAME = "fluentflow"
