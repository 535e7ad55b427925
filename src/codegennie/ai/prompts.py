"""Prompt templates for every request the assistant sends.

Each sidebar action owns a template; the remaining builders serve the quick
fix, fix-all, remote execution and local-model channels.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Sequence

from ..editor.languages import Language
from .ai_types import DispatchAction, Issue

__all__ = [
    "ActionSpec",
    "ACTIONS",
    "ACTION_IDS",
    "get_action",
    "quick_fix_prompt",
    "fix_all_prompt",
    "run_code_prompt",
    "comment_to_code_prompt",
    "completion_prompt",
    "strip_code_fences",
]


@dataclass(slots=True, frozen=True)
class ActionSpec:
    """A user-invokable action and the backend request it maps to."""

    id: str
    label: str
    dispatch: DispatchAction
    template: Callable[[str, Language], str]

    def prompt(self, code: str, language: Language | str) -> str:
        return self.template(code, Language.parse(language))


def _code_block(code: str, language: Language) -> str:
    return f"```{language.value}\n{code}\n```"


def _explain(code: str, language: Language) -> str:
    return f"""You are an expert programmer and code reviewer. Explain the following {language.value} code snippet in a clear and concise way.
Describe its purpose, how it works, and any potential improvements.
Format your response using Markdown with clear headings.

Code:
{_code_block(code, language)}"""


def _refactor(code: str, language: Language) -> str:
    return f"""You are an expert programmer specializing in clean code and refactoring. Refactor the following {language.value} code to improve its readability, performance, and maintainability.
Provide the refactored code and a bulleted list of the changes you made and why.
Format your response using Markdown, with the refactored code inside a labeled code block.

Code:
{_code_block(code, language)}"""


def _docs(code: str, language: Language) -> str:
    return f"""You are a technical writer who documents source code. Write reference documentation for the following {language.value} code.
Document every function, class and public variable: purpose, parameters, return values and error conditions.
Then return the code with idiomatic {language.value} doc comments added. Format your response using Markdown.

Code:
{_code_block(code, language)}"""


def _bugs(code: str, language: Language) -> str:
    return f"""You are an expert static analysis tool. Analyze the following {language.value} code for potential bugs, logical errors, or edge cases.
Identify the exact start and end line and column number for each issue. The 'endColumn' should point to the character after the problematic code.
Provide your findings as a JSON array of objects. Each object must have these keys: "line" (number), "column" (number), "endLine" (number), "endColumn" (number), "message" (string), and "severity" (one of "error", "warning", or "info").
If no bugs are found, return an empty array.

Code:
{_code_block(code, language)}"""


_JS_TEST_EXAMPLE = """const assert = {
  strictEqual(actual, expected, message) {
    if (actual !== expected) {
      throw new Error(message || `Assertion failed: Expected ${expected}, but got ${actual}`);
    }
  }
};
window.generatedTests = [
  {
    name: 'should handle base case n = 0',
    fn: () => {
      assert.strictEqual(fibonacci(0), 0);
    }
  }
];"""


def _tests(code: str, language: Language) -> str:
    return f"""You are a software engineer who specializes in testing. Write a suite of unit tests for the following {language.value} code.
The primary output format MUST be a single JSON object with one key: "testCode".
For JavaScript, the "testCode" value should be a string that, when executed, creates a global 'generatedTests' array. Each element in 'generatedTests' should be an object with "name" (string) and "fn" (function) keys. You MUST define a simple 'assert' object within the test code string for assertions.
For other languages (like Python, Java, C++), the "testCode" value should be a string containing the complete test code in a standard framework (e.g., pytest for Python, JUnit for Java, Google Test for C++).

Example of the required "testCode" string structure for JavaScript:
{_JS_TEST_EXAMPLE}

Original Code to be tested:
{_code_block(code, language)}"""


ACTIONS: tuple[ActionSpec, ...] = (
    ActionSpec("explain", "Explain Code", DispatchAction.ANALYZE, _explain),
    ActionSpec("refactor", "Refactor Code", DispatchAction.ANALYZE, _refactor),
    ActionSpec("docs", "Generate Docs", DispatchAction.ANALYZE, _docs),
    ActionSpec("bugs", "Find Bugs", DispatchAction.FIND_BUGS, _bugs),
    ActionSpec("tests", "Generate Tests", DispatchAction.GENERATE_TESTS, _tests),
)
ACTION_IDS: tuple[str, ...] = tuple(action.id for action in ACTIONS)
_ACTIONS_BY_ID = {action.id: action for action in ACTIONS}


def get_action(action_id: str) -> ActionSpec | None:
    return _ACTIONS_BY_ID.get(action_id)


def quick_fix_prompt(snippet: str, issue: Issue, language: Language) -> str:
    return f"""You are an automated code fixing tool.
Given the following {language.value} code snippet and a specific bug report, provide the corrected line(s) of code.
Only output the raw code for the replacement. Do not include explanations, comments, or markdown formatting.

Bug: "{issue.message}" on line {issue.start_line}.

Problematic Code:
{_code_block(snippet, language)}

Corrected Code:"""


def fix_all_prompt(code: str, issues: Sequence[Issue], language: Language) -> str:
    bug_list = "\n".join(f"- L{issue.start_line}: {issue.message}" for issue in issues)
    return f"""You are an expert AI programmer. The following {language.value} code has several bugs.
Your task is to fix all of them and return the complete, corrected code.
Do not add any new functionality or explanations. Only output the raw, corrected {language.value} code without any markdown formatting.

Bugs found:
{bug_list}

Original Code:
{_code_block(code, language)}

Corrected Code:"""


def run_code_prompt(code: str, language: Language) -> str:
    return f"""You are a powerful code execution engine.
Execute the following {language.value} code and return ONLY its standard output as a raw string.
If the code produces any runtime errors, return the full error message, including stack trace if available.
Do not provide any explanations, comments, or markdown formatting. Just the raw output or error.

Code:
{_code_block(code, language)}"""


def comment_to_code_prompt(instruction: str, language: Language) -> str:
    return f"""You are an expert code generation AI. Given the following comment, write the corresponding {language.display_name} code.
Only output the raw code. Do not include any explanations, comments, or markdown formatting like ```{language.value}.

Comment: "{instruction}"

Code:"""


def completion_prompt(context: str, language: Language) -> str:
    return f"""You are a code completion and correction AI assistant.
Given the following {language.display_name} code context which ends in an incomplete or incorrect line, provide a corrected and completed version of ONLY THE LAST LINE.
Do not output any other text, just the single, corrected line of code.

<CODE_CONTEXT>
{context}
</CODE_CONTEXT>

<CORRECTED_LINE>
"""


def strip_code_fences(text: str, language: Language | str | None = None) -> str:
    """Remove markdown code fences the model added despite being told not to."""

    tag = Language.parse(language).value if language else r"[\w+#-]*"
    pattern = re.compile(rf"```(?:{tag})?\n|\n```|```")
    return pattern.sub("", text or "").strip()
