"""
Repository code summarizer.

Turns a GitHub repository into the project inputs the pipeline needs: a
short narrative summary, representative code, and the dominant language.
Only root-level files are scanned, most important names first.
"""

import logging
from collections import Counter

from ..github import GitHubClient
from .models import CodeSummary

logger = logging.getLogger(__name__)

MAX_FILE_CHARS = 50_000
MAX_FEATURES = 8

CODE_EXTENSIONS = {
    "js", "jsx", "ts", "tsx", "py", "java", "cpp", "c", "h",
    "cs", "php", "rb", "go", "rs", "swift", "kt", "scala",
    "vue", "svelte", "html", "css", "scss", "sass", "less",
    "sql", "sh", "bash", "ps1", "yaml", "yml", "json",
    "xml", "md", "dockerfile", "makefile",
}

# Name fragment → priority; first match wins, so order matters
FILE_PRIORITIES = [
    ("index", 100), ("main", 95), ("app", 90), ("server", 85),
    ("api", 80), ("router", 75), ("controller", 70), ("service", 65),
    ("model", 60), ("component", 55), ("utils", 50), ("config", 45),
    ("readme", 40), ("package", 35), ("dockerfile", 30), ("makefile", 25),
]
DEFAULT_PRIORITY = 10

LANGUAGES = {
    "js": "JavaScript", "jsx": "JavaScript", "ts": "TypeScript", "tsx": "TypeScript",
    "py": "Python", "java": "Java", "cpp": "C++", "c": "C", "h": "C", "cs": "C#",
    "php": "PHP", "rb": "Ruby", "go": "Go", "rs": "Rust", "swift": "Swift",
    "kt": "Kotlin", "scala": "Scala", "vue": "Vue", "svelte": "Svelte",
    "html": "HTML", "css": "CSS", "scss": "SCSS", "sass": "SASS", "less": "LESS",
    "sql": "SQL", "sh": "Shell", "bash": "Shell", "ps1": "PowerShell",
    "yaml": "YAML", "yml": "YAML", "json": "JSON", "xml": "XML", "md": "Markdown",
}

# (feature, content keywords, path keywords)
FEATURE_RULES = [
    ("React Framework", ("react", "jsx"), ()),
    ("Vue.js Framework", ("vue",), ("vue",)),
    ("Angular Framework", ("angular", "@angular"), ()),
    ("Express.js Server", ("express", "app.listen"), ()),
    ("Python Web Framework", ("fastapi", "flask"), ()),
    ("MongoDB Database", ("mongoose", "mongodb"), ()),
    ("SQL Database ORM", ("sequelize", "prisma"), ()),
    ("Supabase Backend", ("supabase",), ()),
    ("Authentication System", ("auth", "login", "jwt"), ()),
    ("REST API", ("api", "endpoint"), ()),
    ("GraphQL API", ("graphql",), ()),
    ("Client-side Routing", ("router", "routing"), ()),
    ("State Management", ("state", "redux", "zustand"), ()),
    ("Testing Framework", ("test", "jest", "cypress"), ()),
    ("Docker Containerization", ("docker",), ("dockerfile",)),
    ("Cloud Deployment", (), ("vercel", "netlify")),
]


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def is_code_file(filename: str) -> bool:
    lower = filename.lower()
    return _extension(filename) in CODE_EXTENSIONS or "dockerfile" in lower or "makefile" in lower


def file_priority(filename: str) -> int:
    lower = filename.lower()
    for fragment, priority in FILE_PRIORITIES:
        if fragment in lower:
            return priority
    return DEFAULT_PRIORITY


def file_language(filename: str) -> str:
    return LANGUAGES.get(_extension(filename), "Unknown")


def extract_key_features(files: list[dict]) -> list[str]:
    features: list[str] = []
    for f in files:
        content = f["content"].lower()
        path = f["path"].lower()
        for feature, words, path_words in FEATURE_RULES:
            if feature in features:
                continue
            if any(w in content for w in words) or any(w in path for w in path_words):
                features.append(feature)
    return features[:MAX_FEATURES]


def build_summary(files: list[dict], primary_language: str) -> str:
    total_lines = sum(f["lines"] for f in files)
    languages = {f["language"] for f in files}
    parts = [
        f"This {primary_language} project contains {len(files)} code files "
        f"with {total_lines} total lines of code."
    ]
    if languages & {"JavaScript", "TypeScript"}:
        parts.append("It appears to be a web application with frontend components.")
    if any("api" in f["path"] or "server" in f["path"] for f in files):
        parts.append("The project includes backend/API functionality.")
    if any("component" in f["path"].lower() for f in files):
        parts.append("It uses a component-based architecture.")
    return " ".join(parts)


class GitHubCodeSummarizer:
    def __init__(self, client: GitHubClient):
        self._client = client

    async def summarize(self, full_name: str, access_token: str, max_files: int = 10) -> CodeSummary:
        """
        Scan ``owner/name`` and summarize its most important root files.

        Files over 50k characters or with NUL bytes are skipped as binary or
        generated. A file that fails to download is skipped, not fatal.
        """
        entries = await self._client.list_root(full_name, access_token)
        candidates = [
            e for e in entries
            if e.get("type") == "file" and e.get("download_url") and is_code_file(e.get("name", ""))
        ]
        candidates.sort(key=lambda e: file_priority(e["name"]), reverse=True)
        candidates = candidates[:max_files]
        logger.info(f"Scanning {len(candidates)} file(s) from {full_name}")

        files: list[dict] = []
        line_counts: Counter = Counter()
        for entry in candidates:
            content = await self._client.download(entry["download_url"], access_token)
            if content is None:
                continue
            if len(content) > MAX_FILE_CHARS or "\0" in content:
                logger.info(f"Skipping large/binary file: {entry['name']}")
                continue
            language = file_language(entry["name"])
            lines = len(content.split("\n"))
            files.append({
                "path": entry.get("path", entry["name"]),
                "content": content,
                "language": language,
                "lines": lines,
            })
            line_counts[language] += lines

        primary = line_counts.most_common(1)[0][0] if line_counts else "Unknown"
        representative = "\n\n".join(f"// File: {f['path']}\n{f['content']}" for f in files)

        return CodeSummary(
            narrative_summary=build_summary(files, primary),
            representative_code=representative,
            detected_language=primary,
            key_features=extract_key_features(files),
            files_analyzed=[f["path"] for f in files],
            total_lines=sum(f["lines"] for f in files),
        )
