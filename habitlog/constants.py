STATE_TABLE = "app_state"

ENTRIES_KEY = "habit_entries"
COLUMNS_KEY = "custom_columns"
CATEGORIES_KEY = "custom_categories"
HABIT_NAME_KEY = "habit_name"
DRIVE_FILE_ID_KEY = "drive_file_id"
DRIVE_LAST_SYNCED_KEY = "drive_last_synced"
GOOGLE_TOKENS_KEY = "google_tokens"

DEFAULT_CATEGORY_NAMES = ["RELAX", "REWARD", "FOCUS", "HUMAN NEED"]

CSV_BASE_HEADERS = ["Date", "Time", "Reason", "Notes"]
CSV_REASON_ALIASES = ("Reason", "Category")
CSV_DATE_FORMAT = "%Y-%m-%d"
CSV_TIME_FORMAT = "%H:%M:%S"
CSV_DATETIME_FORMAT = f"{CSV_DATE_FORMAT} {CSV_TIME_FORMAT}"

CSV_MIME_TYPE = "text/csv"
SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"

BOOLEAN_DISPLAY = {True: "Yes", False: "No"}
