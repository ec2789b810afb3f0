"""Centralized user-facing text for the vaultquery CLI and renderers."""

from __future__ import annotations


class Styles:
    ERROR = "red"
    WARNING = "yellow"
    SUCCESS = "green"
    INFO = "dim"
    TITLE = "bold cyan"
    TABLE_HEADER = "bold magenta"


class Messages:
    APP_HELP = "vaultquery – cached TABLE/LIST/TASK queries over a markdown vault."
    HELP_QUERY = "Query text, e.g. 'TABLE status FROM \"Projects\" SORT due DESC'."
    HELP_VAULT_PATH = "Vault root directory (defaults to the configured vault)."
    HELP_BASE_PATH = "Folder that quoted FROM sources are resolved against."
    HELP_RENDER_MODE = "Render mode: {modes}."
    HELP_FORMAT = "Output format: rich (default), porcelain or json."
    HELP_REFRESH = "Force a full vault rescan before running."
    HELP_VERBOSE = "Log cache diagnostics to stderr."
    HELP_SCAN_PATTERN = "Glob pattern(s) selecting files (repeatable)."
    HELP_SCAN_SORT = "Sort by modified, path or size."
    HELP_SCAN_LIMIT = "Maximum number of files to list."
    HELP_READ_PATHS = "Vault-relative note paths to read."
    HELP_RENDER_DATAVIEW = "Replace dataview code blocks with rendered results."
    HELP_SEARCH_TEXT = "Text (or regular expression with --regex) to find."
    HELP_SEARCH_REGEX = "Treat the search text as a regular expression."
    HELP_SEARCH_CASE = "Match case exactly."
    HELP_SEARCH_CONTEXT = "Lines of context around each match."
    HELP_SEARCH_MAX = "Maximum number of matches to return."
    HELP_SET_VAULT_PATH = "Persist the default vault path."
    HELP_SET_STRUCTURE_TTL = "Seconds a vault scan stays valid."
    HELP_SET_CONTENT_TTL = "Seconds a cached note stays valid."
    HELP_SET_THRESHOLD = "Row count at which smart rendering switches to summary."
    HELP_SET_RENDER_MODE = "Default render mode for query output."
    HELP_ADD_IGNORE = "Add an ignore pattern for vault scans (repeatable)."
    HELP_CLEAR_IGNORE = "Reset ignore patterns to the defaults."
    HELP_SHOW_CONFIG = "Show current configuration."
    HELP_CLEAR_VAULT_PATH = "Forget the persisted vault path."
    HELP_SCAN_DETAILS = "Include frontmatter, preview and text statistics."
    HELP_EXCLUDE_PATH = "Gitignore-style pattern of notes to skip (repeatable)."

    ERROR_VAULT_PATH_MISSING = (
        "Vault path not configured. Use `vaultquery config --set-vault-path <dir>` "
        "or set VAULTQUERY_VAULT_PATH."
    )
    ERROR_EMPTY_SEARCH = "Cannot search with an empty query."
    ERROR_INVALID_REGEX = "Invalid regex pattern: {reason}"
    ERROR_MODE_INVALID = "Unsupported render mode '{value}'. Allowed: {allowed}."
    ERROR_SORT_INVALID = "Unsupported sort key '{value}'. Allowed: {allowed}."
    ERROR_CONFIG_JSON_INVALID = "Config payload must be a JSON object."
    ERROR_CONFIG_VALUE_INVALID = "Invalid config value for '{field}'."
    ERROR_QUERY_FAILED = "Query failed ({kind}): {message}"
    ERROR_NOTE_FAILED = "{path}: {message}"
    ERROR_DATE_INVALID = "Invalid date {value!r}; expected YYYY-MM-DD."

    ERROR_PARSE_EMPTY_CLAUSE = "{clause} clause requires an expression."
    ERROR_PARSE_UNKNOWN_KIND = (
        "Unsupported query type '{token}'. Expected TABLE, LIST or TASK."
    )
    ERROR_PARSE_UNEXPECTED = "Unexpected {token!r} at position {position}."
    ERROR_PARSE_UNTERMINATED = "Unterminated string starting at position {position}."
    ERROR_PARSE_DUPLICATE = "Duplicate {clause} clause."
    ERROR_PARSE_ORDER = "{clause} clause is out of order."
    ERROR_PARSE_LIMIT = "LIMIT expects a non-negative integer, got '{value}'."
    ERROR_PARSE_SORT = "SORT expects '<field> [ASC|DESC]', got '{value}'."
    ERROR_PARSE_FROM = "Unsupported FROM source {token!r}; use \"folder\" or #tag joined with OR."
    ERROR_PARSE_TASK_FIELDS = "TASK queries do not take a field list."
    ERROR_PARSE_LIST_FIELDS = "LIST queries take at most one field."
    ERROR_PARSE_FIELD = "Empty field in field list."
    ERROR_PARSE_FUNCTION = "Unknown function '{name}'."
    ERROR_PARSE_ARITY = "{name}() expects {count} arguments."
    ERROR_PARSE_END = "Unexpected end of expression."
    ERROR_PARSE_DEPTH = "Expression nests deeper than {limit} levels."

    ERROR_NOT_FOUND = "File not found: {path}"
    ERROR_READ_FAILED = "Unable to read {path}: {reason}"
    ERROR_FRONTMATTER_INVALID = "Invalid frontmatter in {path}: {reason}"
    ERROR_SCAN_FAILED = "Unable to scan vault at {path}: {reason}"
    ERROR_TYPE_MISMATCH = "Cannot compare {left} with {right} using '{op}'."
    ERROR_CONTAINS_TARGET = "contains() cannot search a {kind} value."

    INFO_EMPTY_QUERY = "*Empty query*"
    INFO_NO_RESULTS = "*No results found*"
    INFO_QUERY_ERROR = "**Query error:** {message}"
    INFO_COUNT = "{count} result{plural}"
    INFO_COMPACT_OMITTED = "*… {count} more row{plural} omitted*"
    INFO_SUMMARY_TITLE = "**{count} results** (summarized by {field})"
    INFO_SUMMARY_SAMPLE = "Sample:"
    INFO_SUMMARY_MORE = "… and {count} more"
    INFO_NO_MATCHES = "No matches found."
    INFO_QUERY_SUMMARY = "{count} row{plural}, rendered as {mode}"
    INFO_SEARCH_SUMMARY = "{shown} of {total} match{plural} in {files} notes"
    INFO_SKIPPED = "{count} note{plural} could not be read and were skipped."
    INFO_SCAN_EMPTY = "No notes found in the vault."
    INFO_CONFIG_SAVED = "Configuration updated."
    INFO_CONFIG_SUMMARY = (
        "Vault path: {vault}\n"
        "Structure TTL: {structure_ttl}s\n"
        "Content TTL: {content_ttl}s\n"
        "Context TTL: {context_ttl}s\n"
        "Content cache size: {content_size}\n"
        "Smart threshold: {threshold}\n"
        "Render mode: {mode}\n"
        "Ignore patterns: {ignore}"
    )

    TABLE_HEADER_FILE = "File"
    TABLE_HEADER_COUNT = "Count"
    TABLE_HEADER_FOLDER = "Folder"
    TABLE_HEADER_TASK = "task"
    TABLE_HEADER_COMPLETED = "completed"
    TABLE_HEADER_PATH = "Path"
    TABLE_HEADER_SIZE = "Size"
    TABLE_HEADER_MODIFIED = "Modified"
    TABLE_HEADER_LINE = "Line"
    TABLE_HEADER_MATCH = "Match"
    TABLE_TITLE_SCAN = "Vault notes"
    TABLE_TITLE_SEARCH = "Content matches for {query!r}"
    TABLE_TITLE_STATS = "Cache statistics"
