# --- Tool names ---

BASH = "bash"
READ_FILE = "read_file"
WRITE_FILE = "write_file"
EDIT_FILE = "edit_file"
LS = "ls"
GREP = "grep"
TODO_READ = "todo_read"
TODO_WRITE = "todo_write"


# --- Content Truncation Limits ---

BASH_OUTPUT_LIMIT = 5000
GREP_MAX_MATCHES = 200
LS_MAX_ENTRIES = 500
DEFAULT_READ_LINES = 500


# --- Models ---

DEFAULT_CONTEXT_LIMIT = 128_000
DEFAULT_OUTPUT_LIMIT = 8192

THINKING_BUDGET_LOW = 1024
THINKING_BUDGET_HIGH = 31999


# --- Agent Limits ---

AGENT_MAX_ITERATIONS = 50
BASH_TIMEOUT = 30


# --- Session ---

SESSION_LIST_LIMIT = 20
