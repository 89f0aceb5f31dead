# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for framework extractors and the extractor registry."""

from __future__ import annotations

from collections.abc import Callable
from textwrap import dedent

import pytest

from vibe_validate.extractors import (
    DEFAULT_REGISTRY,
    NO_STRUCTURED_ERRORS,
    Extractor,
    ExtractorRegistry,
    ParsedOutput,
    detect_and_extract,
    strip_ansi,
)
from vibe_validate.extractors.playwright import classify_failure
from vibe_validate.extractors.registry import DEGRADED_SUMMARY


def _tsc_output(count: int) -> str:
    return "\n".join(
        f"src/module{index}.ts({index + 1},5): error TS2322: Type 'string' is not assignable to type 'number'."
        for index in range(count)
    )


def _jest_output(count: int) -> str:
    blocks = [" FAIL  src/math.test.js"]
    for index in range(count):
        blocks.extend(
            [
                f"  ● Math › adds case {index}",
                "",
                "    expect(received).toBe(expected) // Object.is equality",
                "",
                f"      at Object.<anonymous> (src/math.test.js:{10 + index}:5)",
                "",
            ],
        )
    blocks.append(f"Tests:       {count} failed, {count} total")
    return "\n".join(blocks)


def test_typescript_errors_are_bounded_with_true_count() -> None:
    result = detect_and_extract(_tsc_output(15), "tsc --noEmit")

    assert result.framework == "typescript"
    assert len(result.errors) == 10
    assert result.summary == "15 type errors, 0 warnings (showing 10)"
    assert result.metadata.total_count == 15
    assert result.errors[0].file == "src/module0.ts"
    assert result.errors[0].rule_id == "TS2322"
    assert "Type mismatch" in result.guidance


def test_jest_failures_are_bounded_with_true_count() -> None:
    result = detect_and_extract(_jest_output(12), "npx jest")

    assert result.framework == "jest"
    assert len(result.errors) == 10
    assert "12 tests failed" in result.summary
    assert result.summary.endswith("(showing 10)")
    first = result.errors[0]
    assert first.file == "src/math.test.js"
    assert first.line == 10
    assert first.context == "Math › adds case 0"
    assert first.message.startswith("expect(received).toBe(expected)")


def test_pytest_failures_section() -> None:
    output = dedent(
        """\
        ============================= test session starts ==============================
        platform linux -- Python 3.12.1, pytest-8.2.0, pluggy-1.5.0
        collected 2 items

        tests/test_math.py F.                                                    [100%]

        =================================== FAILURES ===================================
        _________________________________ test_divide __________________________________

            def test_divide():
        >       assert divide(4, 2) == 3
        E       assert 2.0 == 3
        E        +  where 2.0 = divide(4, 2)

        tests/test_math.py:8: AssertionError
        =========================== short test summary info ============================
        FAILED tests/test_math.py::test_divide - assert 2.0 == 3
        ========================= 1 failed, 1 passed in 0.02s ==========================
        """,
    )

    result = detect_and_extract(output, "pytest")

    assert result.framework == "pytest"
    assert result.summary == "1 test failed"
    error = result.errors[0]
    assert error.file == "tests/test_math.py"
    assert error.line == 8
    assert error.context == "test_divide"
    assert error.message.startswith("assert 2.0 == 3")
    assert result.guidance == "Review test assertions and expected values"


def test_vitest_banner_wins() -> None:
    output = dedent(
        """\
         RUN  v1.6.0 /repo

         ❯ src/sum.test.ts (2)
           × sum > adds numbers
         ⎯⎯⎯⎯⎯⎯⎯ Failed Tests 1 ⎯⎯⎯⎯⎯⎯⎯

         FAIL  src/sum.test.ts > sum > adds numbers
        AssertionError: expected 3 to be 4
         ❯ src/sum.test.ts:5:17

         Tests  1 failed | 1 passed (2)
        """,
    )

    result = detect_and_extract(output)

    assert result.framework == "vitest"
    assert result.metadata.confidence == 1.0
    assert result.summary == "1 test failed"
    error = result.errors[0]
    assert error.file == "src/sum.test.ts"
    assert error.line == 5
    assert error.message == "AssertionError: expected 3 to be 4"


def test_tap_not_ok_lines() -> None:
    output = dedent(
        """\
        TAP version 13
        # adds numbers
        not ok 1 should be equal
          ---
            operator: equal
            expected: 4
            actual:   3
            at: Test.<anonymous> (file:///repo/test/sum.js:7:5)
          ...
        # fail  1
        """,
    )

    result = detect_and_extract(output)

    assert result.framework == "tap"
    assert result.errors[0].file == "/repo/test/sum.js"
    assert result.errors[0].line == 7
    assert result.summary == "1 test failed"


def test_generic_fallback_for_unrecognised_output() -> None:
    result = detect_and_extract("Compiling...\nError: config file missing at build.go:12\nDone\n", "make")

    assert result.framework == "generic"
    assert result.metadata.confidence == 0.5
    assert result.summary == "1 error detected"
    assert result.errors[0].file == "build.go"
    assert result.errors[0].line == 12


def test_generic_fallback_without_errors_says_so() -> None:
    result = detect_and_extract("all quiet\n")

    assert result.framework == "generic"
    assert result.errors == ()
    assert result.summary == NO_STRUCTURED_ERRORS


def test_ansi_sequences_are_stripped_before_detection() -> None:
    coloured = "\x1b[31msrc/a.ts(1,1): error TS2304: Cannot find name 'x'.\x1b[0m"

    assert strip_ansi(coloured) == "src/a.ts(1,1): error TS2304: Cannot find name 'x'."
    assert detect_and_extract(coloured).framework == "typescript"


def _raising_parser(_output: str) -> ParsedOutput:
    raise ValueError("unexpected layout")


def test_degraded_extractor_falls_back_to_generic() -> None:
    broken = Extractor(name="broken", detect=lambda _output, _command: 1.0, parse=_raising_parser)
    registry = ExtractorRegistry([broken])

    result = registry.detect_and_extract("Error: something bad\n")

    assert result.framework == "generic"
    assert result.summary == "1 error detected"


def _raising_detector(_output: str, _command: str) -> float:
    raise TypeError("detector bug")


def test_failing_detector_is_skipped_during_ranking() -> None:
    broken = Extractor(name="broken", detect=_raising_detector, parse=lambda _o: ParsedOutput(summary="broken"))
    working = Extractor(name="working", detect=lambda _o, _c: 0.9, parse=lambda _o: ParsedOutput(summary="ok"))
    registry = ExtractorRegistry([broken, working])

    assert [candidate.extractor.name for candidate in registry.rank("x")] == ["working"]
    assert registry.detect_and_extract("x").framework == "working"


def test_failing_detector_alone_uses_fallback() -> None:
    broken = Extractor(name="broken", detect=_raising_detector, parse=lambda _o: ParsedOutput(summary="broken"))

    result = ExtractorRegistry([broken]).detect_and_extract("Error: disk full\n")

    assert result.framework == "generic"


def test_degraded_fallback_yields_summary_only_result() -> None:
    fallback = Extractor(name="plain", detect=lambda _o, _c: 0.5, parse=_raising_parser)
    registry = ExtractorRegistry([], fallback=fallback)

    result = registry.detect_and_extract("Error: something bad\n")

    assert result.framework == "plain"
    assert result.summary == DEGRADED_SUMMARY
    assert result.errors == ()
    assert result.metadata.confidence == 0.0
    assert result.metadata.total_count == 0


def test_ties_resolve_by_registration_order() -> None:
    first = Extractor(name="first", detect=lambda _o, _c: 0.8, parse=lambda _o: ParsedOutput(summary="first"))
    second = Extractor(name="second", detect=lambda _o, _c: 0.8, parse=lambda _o: ParsedOutput(summary="second"))

    assert ExtractorRegistry([first, second]).detect_and_extract("x").framework == "first"
    assert ExtractorRegistry([second, first]).detect_and_extract("x").framework == "second"


def test_low_confidence_candidates_use_fallback() -> None:
    weak = Extractor(name="weak", detect=lambda _o, _c: 0.3, parse=lambda _o: ParsedOutput(summary="weak"))
    registry = ExtractorRegistry([weak])

    assert registry.select("anything") is None
    assert registry.detect_and_extract("anything").framework == "generic"


def test_registry_rejects_duplicate_names() -> None:
    registry = ExtractorRegistry()

    with pytest.raises(ValueError, match="already registered"):
        registry.register(registry["jest"])


def test_registry_honours_custom_error_cap() -> None:
    registry = ExtractorRegistry(max_errors=3)

    result = registry.detect_and_extract(_tsc_output(5))

    assert len(result.errors) == 3
    assert result.summary.endswith("(showing 3)")


def test_builtin_order_is_stable() -> None:
    assert list(DEFAULT_REGISTRY)[:3] == ["typescript", "eslint", "pytest"]


@pytest.mark.parametrize(
    ("message", "block", "expected"),
    [
        ("Timeout 5000ms exceeded.", "waiting for locator('#submit')", "element-not-found"),
        ("Test timeout of 30000ms exceeded.", "", "timeout"),
        ("expect(received).toBe(expected)", "", "assertion-error"),
        ("page.goto: net::ERR_CONNECTION_REFUSED", "", "navigation-error"),
        ("boom", "", "error"),
    ],
)
def test_playwright_failure_classification(message: str, block: str, expected: str) -> None:
    assert classify_failure(message, block) == expected


def _mocha_output(count: int) -> str:
    lines = ["", "  0 passing (12ms)", f"  {count} failing", ""]
    for index in range(count):
        lines.extend(
            [
                f"  {index + 1}) Calculator",
                f"       adds case {index}:",
                "     AssertionError [ERR_ASSERTION]: Expected values to be strictly equal:",
                f"      at Context.<anonymous> (test/calc.test.js:{10 + index}:12)",
                "",
            ],
        )
    return "\n".join(lines)


def _jasmine_output(count: int) -> str:
    lines = ["Started", "F" * count, "", "Failures:"]
    for index in range(count):
        lines.extend(
            [
                f"{index + 1}) Calculator adds case {index}",
                "  Message:",
                f"    Expected {index} to equal {index + 1}.",
                "  Stack:",
                "        at <Jasmine>",
                f"        at UserContext.<anonymous> (spec/calc.spec.js:{10 + index}:20)",
                "",
            ],
        )
    lines.append(f"{count} specs, {count} failures")
    return "\n".join(lines)


def _ava_output(count: int) -> str:
    lines = [f"  ✘ [fail]: math › adds case {index}" for index in range(count)]
    lines.append("  ─")
    for index in range(count):
        lines.extend(
            [
                "",
                f"  math › adds case {index}",
                "",
                f"  test/math.js:{10 + index}",
                "",
                "  Difference (- actual, + expected):",
                "",
                f"  › file:///repo/test/math.js:{10 + index}:5",
                "",
                "  ─",
            ],
        )
    lines.append(f"  {count} tests failed")
    return "\n".join(lines)


def _playwright_output(count: int) -> str:
    lines = [f"Running {count} tests using 1 worker", ""]
    for index in range(count):
        lines.extend(
            [
                f"  {index + 1}) tests/login.spec.ts:{12 + index}:5 › login › rejects case {index}",
                "",
                "    Error: expect(received).toBe(expected)",
                "",
                "    Expected: 1",
                "    Received: 0",
                "",
                f"      at tests/login.spec.ts:{14 + index}:25",
                "",
            ],
        )
    lines.append(f"  {count} failed")
    return "\n".join(lines)


def _eslint_output(count: int) -> str:
    lines = ["", "/repo/src/app.js"]
    lines.extend(
        f"  {index + 1}:10  error  'value{index}' is defined but never used  no-unused-vars" for index in range(count)
    )
    lines.extend(["", f"✖ {count} problems ({count} errors, 0 warnings)"])
    return "\n".join(lines)


def _vitest_output(count: int) -> str:
    lines = [" RUN  v1.6.0 /repo", ""]
    for index in range(count):
        lines.extend(
            [
                f" FAIL  src/sum.test.ts > sum > adds case {index}",
                f"AssertionError: expected {index} to be {index + 1}",
                f" ❯ src/sum.test.ts:{5 + index}:17",
                "",
            ],
        )
    lines.append(f" Tests  {count} failed | 0 passed ({count})")
    return "\n".join(lines)


def _pytest_output(count: int) -> str:
    lines = [
        "============================= test session starts ==============================",
        "platform linux -- Python 3.12.1, pytest-8.2.0, pluggy-1.5.0",
        f"collected {count} items",
        "",
        "=========================== short test summary info ============================",
    ]
    lines.extend(f"FAILED tests/test_math.py::test_case_{index} - assert {index} == -1" for index in range(count))
    lines.append(f"============================== {count} failed in 0.05s ==============================")
    return "\n".join(lines)


def _tap_output(count: int) -> str:
    lines = ["TAP version 13"]
    for index in range(count):
        lines.extend(
            [
                f"not ok {index + 1} adds case {index}",
                "  ---",
                f"    at: Test.<anonymous> (file:///repo/test/sum.js:{7 + index}:5)",
                "  ...",
            ],
        )
    lines.append(f"# fail  {count}")
    return "\n".join(lines)


def _junit_output(count: int) -> str:
    cases = [
        dedent(
            f"""\
                <testcase classname="test/calc.test.ts" name="Calculator &gt; adds case {index}" time="0.001">
                    <failure message="expected {index} to be {index + 1}" type="AssertionError">
            AssertionError: expected {index} to be {index + 1}
             ❯ test/calc.test.ts:{10 + index}:21
                    </failure>
                </testcase>""",
        )
        for index in range(count)
    ]
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8" ?>',
            f'<testsuites name="vitest tests" tests="{count}" failures="{count}" errors="0">',
            f'    <testsuite name="test/calc.test.ts" tests="{count}" failures="{count}" errors="0">',
            *cases,
            "    </testsuite>",
            "</testsuites>",
        ],
    )


def _surefire_output(count: int) -> str:
    lines = ["[INFO] --- maven-surefire-plugin:3.2.5:test (default-test) @ demo ---"]
    for index in range(count):
        lines.extend(
            [
                f"[ERROR] com.example.MathTest.testCase{index} -- Time elapsed: 0.01 s <<< FAILURE!",
                f"java.lang.AssertionError: expected:<{index}> but was:<{index + 1}>",
                "\tat org.junit.Assert.fail(Assert.java:89)",
                f"\tat com.example.MathTest.testCase{index}(MathTest.java:{10 + index})",
                "",
            ],
        )
    lines.extend(
        [
            "[INFO] Results:",
            f"[ERROR] Tests run: {count + 3}, Failures: {count}, Errors: 0, Skipped: 0",
        ],
    )
    return "\n".join(lines)


def _compiler_output(count: int) -> str:
    lines = ["[INFO] Compiling 45 source files", "[ERROR] COMPILATION ERROR :"]
    for index in range(count):
        lines.extend(
            [
                f"[ERROR] /repo/src/main/java/com/example/App.java:[{10 + index},5] cannot find symbol",
                f"  symbol:   variable value{index}",
                "  location: class com.example.App",
            ],
        )
    lines.append(f"[INFO] {count} errors")
    return "\n".join(lines)


def _checkstyle_output(count: int) -> str:
    lines = ["[INFO] Starting audit..."]
    lines.extend(
        f"[WARN] /repo/src/main/java/com/example/App.java:{10 + index}:5: Missing a Javadoc comment. [JavadocVariable]"
        for index in range(count)
    )
    lines.extend(
        [
            "Audit done.",
            "[ERROR] Failed to execute goal org.apache.maven.plugins:maven-checkstyle-plugin:3.3.1:check "
            f"(default-cli) on project demo: You have {count} Checkstyle violations. -> [Help 1]",
        ],
    )
    return "\n".join(lines)


@pytest.mark.parametrize(
    ("builder", "framework"),
    [
        (_mocha_output, "mocha"),
        (_jasmine_output, "jasmine"),
        (_ava_output, "ava"),
        (_playwright_output, "playwright"),
        (_eslint_output, "eslint"),
        (_vitest_output, "vitest"),
        (_pytest_output, "pytest"),
        (_tap_output, "tap"),
        (_junit_output, "junit"),
        (_surefire_output, "maven-surefire"),
        (_compiler_output, "maven-compiler"),
        (_checkstyle_output, "maven-checkstyle"),
    ],
)
def test_every_framework_bounds_errors_and_keeps_true_count(builder: Callable[[int], str], framework: str) -> None:
    result = detect_and_extract(builder(12))

    assert result.framework == framework
    assert len(result.errors) == 10
    assert result.metadata.total_count == 12
    assert result.summary.endswith("(showing 10)")


def test_mocha_failure_blocks() -> None:
    result = detect_and_extract(_mocha_output(1), "npx mocha")

    assert result.framework == "mocha"
    assert result.summary == "1 test failed"
    error = result.errors[0]
    assert error.file == "test/calc.test.js"
    assert error.line == 10
    assert error.context == "Calculator > adds case 0"
    assert error.message == "Expected values to be strictly equal:"


def test_jasmine_message_and_stack() -> None:
    result = detect_and_extract(_jasmine_output(1))

    assert result.framework == "jasmine"
    error = result.errors[0]
    assert error.file == "spec/calc.spec.js"
    assert error.line == 10
    assert error.context == "Calculator adds case 0"
    assert error.message == "Expected 0 to equal 1."


def test_ava_verbose_blocks() -> None:
    result = detect_and_extract(_ava_output(2))

    assert result.framework == "ava"
    assert result.summary == "2 tests failed"
    error = result.errors[1]
    assert error.file == "test/math.js"
    assert error.line == 11
    assert error.context == "math › adds case 1"
    assert error.message == "Values are not the same"


def test_playwright_numbered_failures() -> None:
    result = detect_and_extract(_playwright_output(1), "npx playwright test")

    assert result.framework == "playwright"
    assert result.summary == "1 test failed"
    error = result.errors[0]
    assert error.file == "tests/login.spec.ts"
    assert error.line == 14
    assert error.column == 25
    assert error.context == "login › rejects case 0"
    assert error.message == "login › rejects case 0\nexpect(received).toBe(expected)"
    assert "assertion expectation" in result.guidance


def test_eslint_stylish_report() -> None:
    result = detect_and_extract(_eslint_output(2) + "\n  3:1  warning  Unexpected console statement  no-console")

    assert result.framework == "eslint"
    assert result.summary == "2 ESLint errors, 1 warning"
    first = result.errors[0]
    assert first.file == "/repo/src/app.js"
    assert (first.line, first.column) == (1, 10)
    assert first.rule_id == "no-unused-vars"
    assert "Remove or prefix unused variables" in result.guidance


def test_junit_report_failures() -> None:
    result = detect_and_extract("npm test output follows\n" + _junit_output(2))

    assert result.framework == "junit"
    assert result.metadata.confidence == 1.0
    assert result.summary == "2 tests failed"
    error = result.errors[0]
    assert error.file == "test/calc.test.ts"
    assert error.line == 10
    assert error.column == 21
    assert error.context == "Calculator > adds case 0"
    assert error.message == "expected 0 to be 1"
    assert result.guidance == "Review test assertions - expected values may not match actual results"


def test_junit_error_elements_and_passing_cases() -> None:
    output = dedent(
        """\
        <testsuite name="com.example.AppTest" tests="2" failures="0" errors="1">
          <testcase classname="com.example.AppTest" name="passes" time="0.01"/>
          <testcase classname="com.example.AppTest" name="explodes" time="0.02">
            <error type="java.lang.NullPointerException">java.lang.NullPointerException
            at com.example.AppTest.explodes(AppTest.java:31)</error>
          </testcase>
        </testsuite>
        """,
    )

    result = detect_and_extract(output)

    assert result.framework == "junit"
    assert result.metadata.confidence == 0.85
    assert len(result.errors) == 1
    error = result.errors[0]
    assert error.file == "AppTest.java"
    assert error.line == 31
    assert error.message == "java.lang.NullPointerException"
    assert error.context == "explodes"
    assert result.guidance == "Check for null/undefined values before property access"


def test_malformed_junit_report_falls_back_to_generic() -> None:
    broken = '<?xml version="1.0"?>\n<testsuite name="x"><testcase></testsuite>\nError: broken report\n'

    result = detect_and_extract(broken)

    assert result.framework == "generic"


def test_maven_compiler_errors_are_deduplicated() -> None:
    output = "\n".join(
        [
            _compiler_output(1),
            "[ERROR] Failed to execute goal org.apache.maven.plugins:maven-compiler-plugin:3.11.0:compile",
            "[ERROR] /repo/src/main/java/com/example/App.java:[10,5] cannot find symbol",
        ],
    )

    result = detect_and_extract(output, "mvn compile")

    assert result.framework == "maven-compiler"
    assert result.summary == "1 compilation error in 1 file"
    error = result.errors[0]
    assert error.file == "src/main/java/com/example/App.java"
    assert (error.line, error.column) == (10, 5)
    assert error.message == "cannot find symbol\nsymbol:   variable value0\nlocation: class com.example.App"
    assert "mvn compile" in result.guidance


def test_maven_surefire_failure_block() -> None:
    result = detect_and_extract(_surefire_output(1), "mvn test")

    assert result.framework == "maven-surefire"
    assert result.summary == "1 test failed (1 failure, 0 errors)"
    error = result.errors[0]
    assert error.file == "com/example/MathTest.java"
    assert error.line == 10
    assert error.context == "com.example.MathTest.testCase0"
    assert error.message == "AssertionError: expected:<0> but was:<1>"


def test_maven_surefire_condensed_results() -> None:
    output = dedent(
        """\
        [INFO] Results:
        [INFO]
        [ERROR] Failures:
        [ERROR]   MathTest.testAdd:42 expected:<5> but was:<3>
        [ERROR] Errors:
        [ERROR]   MathTest.testNull:77 NullPointerException Cannot invoke "String.length()"
        [INFO]
        [ERROR] Tests run: 4, Failures: 1, Errors: 1, Skipped: 0
        [ERROR] Failed to execute goal org.apache.maven.plugins:maven-surefire-plugin:3.2.5:test
        """,
    )

    result = detect_and_extract(output)

    assert result.framework == "maven-surefire"
    assert result.summary == "2 tests failed (1 failure, 1 error)"
    assert [error.line for error in result.errors] == [42, 77]
    assert result.errors[1].message == 'NullPointerException Cannot invoke "String.length()"'


def test_maven_checkstyle_layouts_are_deduplicated() -> None:
    output = dedent(
        """\
        [INFO] Starting audit...
        [WARN] /project/src/main/java/Foo.java:10:5: Missing Javadoc. [JavadocVariable]
        Audit done.
        [WARNING] src/main/java/Foo.java:[10,5] (javadoc) JavadocVariable: Missing Javadoc.
        [WARNING] src/main/java/Foo.java:[15,1] (blocks) LeftCurly: '{' should be on the previous line.
        """,
    )

    result = detect_and_extract(output)

    assert result.framework == "maven-checkstyle"
    assert result.summary == "2 Checkstyle violations in 1 file"
    assert [(error.line, error.rule_id) for error in result.errors] == [(10, "JavadocVariable"), (15, "LeftCurly")]
    assert result.errors[0].file == "src/main/java/Foo.java"
