"""
Tests for skill directory validation.
"""

from pathlib import Path

from sikil.skills.validator import validate_skill


def make_skill(tmp_path: Path, frontmatter: str | None) -> Path:
    skill = tmp_path / "skill"
    skill.mkdir()
    if frontmatter is not None:
        (skill / "SKILL.md").write_text(frontmatter)
    return skill


def check_names(report) -> dict[str, bool]:
    return {c.name: c.passed for c in report.checks}


class TestValidateSkill:
    def test_complete_skill(self, tmp_path: Path):
        skill = make_skill(
            tmp_path,
            "---\nname: pdf\ndescription: d\nversion: 1\nauthor: a\nlicense: MIT\n---\n",
        )
        (skill / "scripts").mkdir()
        report = validate_skill(skill)
        assert report.passed
        assert report.warnings == []
        assert report.has_scripts
        assert not report.has_references
        assert set(check_names(report)) == {
            "SKILL.md exists", "Frontmatter valid", "Required fields present",
            "Name format", "Description length",
        }

    def test_missing_file_stops(self, tmp_path: Path):
        report = validate_skill(make_skill(tmp_path, None))
        assert not report.passed
        assert check_names(report) == {"SKILL.md exists": False}

    def test_no_frontmatter(self, tmp_path: Path):
        report = validate_skill(make_skill(tmp_path, "# Title only"))
        assert check_names(report)["Frontmatter valid"] is False
        assert "missing frontmatter" in report.checks[-1].message

    def test_missing_required_fields(self, tmp_path: Path):
        report = validate_skill(make_skill(tmp_path, "---\nversion: 1\n---\n"))
        assert check_names(report)["Required fields present"] is False
        assert "name, description" in report.checks[-1].message

    def test_bad_name(self, tmp_path: Path):
        report = validate_skill(make_skill(tmp_path, "---\nname: Bad_Name\ndescription: d\n---\n"))
        assert check_names(report)["Name format"] is False
        assert not report.passed

    def test_long_description(self, tmp_path: Path):
        report = validate_skill(
            make_skill(tmp_path, f"---\nname: pdf\ndescription: {'x' * 1100}\n---\n")
        )
        assert check_names(report)["Description length"] is False

    def test_optional_field_warnings(self, tmp_path: Path):
        report = validate_skill(make_skill(tmp_path, "---\nname: pdf\ndescription: d\n---\n"))
        assert report.passed
        assert len(report.warnings) == 3

    def test_to_dict(self, tmp_path: Path):
        skill = make_skill(tmp_path, "---\nname: pdf\ndescription: d\n---\n")
        (skill / "references").mkdir()
        data = validate_skill(skill).to_dict()
        assert data["passed"] is True
        assert data["has_references"] is True
