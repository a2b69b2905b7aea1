"""
Static configuration used by the built-in filters.
"""

# Version control metadata directories
VCS_DIRECTORY_NAMES = frozenset({".git"})

# Build output and vendored dependency directories
VENDOR_DIRECTORY_NAMES = frozenset(
    {
        "dist",
        "out",
        "build",
        "vendor",
        "node_modules",
        ".next",
    }
)

GITIGNORE_FILE_NAME = ".gitignore"
