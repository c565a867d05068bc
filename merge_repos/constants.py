"""Shared constants for merge-repos."""

# Prefix for every commit message and PR title created by this tool
COMMIT_PREFIX = "[AutoMerge]"

# Marker used to recognise our own pull requests
PR_MARKER = "[AutoMerge]"

# Commit message size limit, the marker is appended once when exceeded
MAX_COMMIT_MESSAGE_LENGTH = 2048
TRUNCATED_MARKER = "...truncated..."

# PR bodies longer than this are logged in summary form only
MAX_PR_BODY_LOG_LENGTH = 256

# Number of commit record lines used to build a merge commit message
MERGE_MESSAGE_LINES = 5

# Process exit codes
EXIT_SUCCESS = 0
EXIT_INTERRUPTED = 1
EXIT_BAD_ARGUMENTS = 2
EXIT_FATAL = 10
EXIT_CLEANUP_FAILED = 11

# Entries that are never copied, moved or deleted
ALWAYS_IGNORED = (".", "..", ".git")

# Manifest sections that are kept sorted
MANIFEST_SORTED_SECTIONS = ("scripts", "dependencies", "devDependencies", "peerDependencies")

# Dependency sections merged from source to destination manifests
DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")

MANIFEST_FILE_NAME = "package.json"
