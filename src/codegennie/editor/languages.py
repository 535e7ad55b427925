"""Supported languages and their starter programs."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

__all__ = ["Language", "DEFAULT_LANGUAGE", "EXECUTABLE_LANGUAGE"]

_GREETING = "Hello World!, Welcome to CodeGennie. Start your coding journey..."


class Language(str, Enum):
    """Closed set of editor languages."""

    JAVASCRIPT = "javascript"
    PYTHON = "python"
    JAVA = "java"
    C = "c"
    CPP = "cpp"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def starter_code(self) -> str:
        """Canonical buffer content loaded when the language is selected."""

        return _STARTER_CODES[self]

    @property
    def supports_local_execution(self) -> bool:
        return self is EXECUTABLE_LANGUAGE

    @classmethod
    def parse(cls, value: "str | Language") -> "Language":
        if isinstance(value, Language):
            return value
        normalized = str(value or "").strip().lower()
        alias = _ALIASES.get(normalized, normalized)
        try:
            return cls(alias)
        except ValueError as exc:
            choices = ", ".join(item.value for item in cls)
            raise ValueError(f"Unsupported language '{value}' (expected one of: {choices})") from exc

    @classmethod
    def from_path(cls, path: Path | str) -> "Language | None":
        suffix = Path(path).suffix.lower()
        return _EXTENSIONS.get(suffix)


_DISPLAY_NAMES = {
    Language.JAVASCRIPT: "JavaScript",
    Language.PYTHON: "Python",
    Language.JAVA: "Java",
    Language.C: "C",
    Language.CPP: "C++",
}

_ALIASES = {"js": "javascript", "py": "python", "c++": "cpp"}

_EXTENSIONS = {
    ".js": Language.JAVASCRIPT,
    ".mjs": Language.JAVASCRIPT,
    ".cjs": Language.JAVASCRIPT,
    ".py": Language.PYTHON,
    ".java": Language.JAVA,
    ".c": Language.C,
    ".h": Language.C,
    ".cpp": Language.CPP,
    ".cc": Language.CPP,
    ".cxx": Language.CPP,
    ".hpp": Language.CPP,
}

_STARTER_CODES = {
    Language.JAVASCRIPT: f'console.log("{_GREETING}");\n\n',
    Language.PYTHON: f'print("{_GREETING}")\n\n',
    Language.JAVA: (
        "public class Main {\n"
        "    public static void main(String[] args) {\n"
        f'        System.out.println("{_GREETING}");\n'
        "    }\n"
        "}\n\n"
    ),
    Language.C: (
        "#include <stdio.h>\n"
        "\n"
        "int main() {\n"
        f'    printf("{_GREETING}\\n");\n'
        "    return 0;\n"
        "}\n"
    ),
    Language.CPP: (
        "#include <iostream>\n"
        "using namespace std;\n"
        "\n"
        "int main() {\n"
        f'    cout << "{_GREETING}" << endl;\n'
        "    return 0;\n"
        "}\n"
    ),
}

DEFAULT_LANGUAGE = Language.JAVASCRIPT
EXECUTABLE_LANGUAGE = Language.JAVASCRIPT
