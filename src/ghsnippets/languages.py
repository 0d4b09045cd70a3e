"""File-extension based language detection.

Well-known build files such as Dockerfile or CMakeLists.txt
are recognised by name before the extension table is consulted.
"""

from __future__ import annotations

from urllib.parse import urlsplit

PLAINTEXT = "plaintext"

EXTENSION_LANGUAGES: dict[str, str] = {
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "java": "java",
    "rb": "ruby",
    "php": "php",
    "cs": "csharp",
    "go": "go",
    "rs": "rust",
    "cpp": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "hpp": "cpp",
    "c": "c",
    "h": "c",
    "html": "html",
    "htm": "html",
    "xml": "xml",
    "css": "css",
    "scss": "scss",
    "less": "less",
    "md": "markdown",
    "json": "json",
    "yaml": "yaml",
    "yml": "yaml",
    "toml": "toml",
    "ini": "ini",
    "sh": "bash",
    "bash": "bash",
    "ps1": "powershell",
    "sql": "sql",
    "kt": "kotlin",
    "kts": "kotlin",
    "swift": "swift",
    "groovy": "groovy",
    "gradle": "groovy",
    "scala": "scala",
    "dart": "dart",
    "lua": "lua",
    "r": "r",
    "pl": "perl",
}

FILENAME_LANGUAGES: dict[str, str] = {
    "dockerfile": "docker",
    "containerfile": "docker",
    "makefile": "make",
    "gnumakefile": "make",
    "cmakelists.txt": "cmake",
    "gemfile": "ruby",
    "rakefile": "ruby",
    "vagrantfile": "ruby",
    "jenkinsfile": "groovy",
}


def detect(url: str) -> str:
    """Map the extension of the file in ``url`` to a highlighter language tag."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return PLAINTEXT
    filename = path.rsplit("/", 1)[-1]
    by_name = FILENAME_LANGUAGES.get(filename.lower())
    if by_name:
        return by_name
    if "." not in filename:
        return PLAINTEXT
    extension = filename.rsplit(".", 1)[-1].lower()
    return EXTENSION_LANGUAGES.get(extension, PLAINTEXT)
