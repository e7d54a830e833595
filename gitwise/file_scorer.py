import os

from gitwise.schemas import FileEntry

# --- Never worth citing (score 0) ---

BINARY_EXTENSIONS = {
    ".png", ".jpg", ".jpeg", ".gif", ".ico", ".svg",
    ".woff", ".woff2", ".ttf", ".zip", ".gz", ".pdf",
    ".exe", ".dll", ".so", ".pyc", ".class", ".bin", ".db", ".sqlite",
}

LOCK_FILES = {
    "package-lock.json", "yarn.lock", "pnpm-lock.yaml",
    "pipfile.lock", "poetry.lock", "composer.lock",
    "gemfile.lock", "cargo.lock", "go.sum",
}

SKIP_DIRS = {
    "node_modules", "vendor", "dist", "build", ".next", "__pycache__",
    ".git", ".idea", ".vscode", "venv", ".venv", "coverage",
}

MANIFEST_FILES = {
    "package.json", "pyproject.toml", "setup.py", "setup.cfg", "requirements.txt",
    "cargo.toml", "go.mod", "pom.xml", "build.gradle",
    "gemfile", "composer.json", "cmakelists.txt", "makefile",
}

ENTRY_POINT_FILES = {
    "main.py", "app.py", "server.py", "manage.py", "index.ts", "index.js",
    "server.js", "app.js", "main.go", "main.rs", "program.cs",
}

SOURCE_DIRS = {"src", "app", "lib", "backend", "frontend", "server", "client", "api", "pkg", "cmd"}

TEST_DIRS = {"test", "tests", "spec", "__tests__"}

SOURCE_EXTENSIONS = {
    ".py", ".js", ".ts", ".jsx", ".tsx", ".go", ".rs", ".java",
    ".c", ".cpp", ".h", ".rb", ".php", ".swift", ".kt", ".scala",
}


def score_entry(entry: FileEntry) -> int:
    """Return 0-100 for how informative a root entry is. 0 means skip."""
    name = entry.name.lower()
    _, ext = os.path.splitext(name)

    if entry.type == "dir":
        if name in SKIP_DIRS:
            return 0
        if name in SOURCE_DIRS:
            return 75
        if name in TEST_DIRS:
            return 40
        if name == "docs":
            return 35
        if name.startswith("."):
            return 20 if name == ".github" else 5
        return 50

    if ext in BINARY_EXTENSIONS or name in LOCK_FILES:
        return 0
    if name.startswith("readme"):
        return 100
    if name in MANIFEST_FILES:
        return 90
    if name in {"dockerfile", "docker-compose.yml", "docker-compose.yaml"}:
        return 80
    if name in ENTRY_POINT_FILES:
        return 70
    if ext in SOURCE_EXTENSIONS:
        return 60
    if name in {"license", "license.md", "contributing.md", "changelog.md"}:
        return 30
    if name.startswith("."):
        return 10
    return 25


def rank_paths(tree: list[FileEntry], limit: int | None = None, files_only: bool = False) -> list[str]:
    """Paths ordered by score (desc) then path; zero-score entries dropped."""
    scored = [
        (score_entry(entry), entry.path)
        for entry in tree
        if not files_only or entry.type == "file"
    ]
    scored = [item for item in scored if item[0] > 0]
    scored.sort(key=lambda item: (-item[0], item[1]))
    paths = [path for _, path in scored]
    return paths if limit is None else paths[:limit]
