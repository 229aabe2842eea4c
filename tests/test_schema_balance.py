"""Tests for structural schema checks."""

from specforge.validators.schema_balance import check_schema, check_schemas

TASK_SCHEMA = """\
export interface Task {
  id: string;
  title: string;
  done: boolean;
}

export function isDone(task: Task): boolean {
  return task.done;
}
"""


class TestCheckSchema:
    def test_balanced_schema_is_clean(self):
        assert check_schema("task", TASK_SCHEMA) == []

    def test_mismatched_braces_is_error(self):
        issues = check_schema("task", "export interface Task { id: string;")
        assert len(issues) == 1
        assert issues[0].severity == "error"
        assert issues[0].message == 'Schema "task" has mismatched braces'
        assert issues[0].location == "schemas/task"

    def test_mismatched_parentheses_is_error(self):
        issues = check_schema("fn", "export function f(a: string { return a; }")
        assert any("mismatched parentheses" in i.message for i in issues)

    def test_empty_export_is_warning(self):
        issues = check_schema("empty", "export {}")
        assert [(i.severity, i.message) for i in issues] == [
            ("warning", 'Schema "empty" has empty export')
        ]

    def test_empty_export_alongside_real_export_is_fine(self):
        content = "export type Id = string;\nexport {}\n"
        assert check_schema("ids", content) == []

    def test_incompletion_marker_is_error(self):
        issues = check_schema("task", "export interface Task {\n  // TODO: add fields\n}")
        assert [i.message for i in issues] == ['Schema "task" contains incomplete code']


class TestCheckSchemas:
    def test_all_clean_scores_100(self):
        result = check_schemas({"task": TASK_SCHEMA})
        assert result.score == 100

    def test_warning_only_still_scores_100(self):
        result = check_schemas({"task": TASK_SCHEMA, "empty": "export {}"})
        assert result.score == 100
        assert len(result.warnings) == 1

    def test_any_error_scores_zero(self):
        result = check_schemas({"task": TASK_SCHEMA, "broken": "interface X {"})
        assert result.score == 0
        assert result.errors[0].location == "schemas/broken"

    def test_no_schemas_scores_100(self):
        assert check_schemas({}).score == 100
