"""Tests for the clarity-scorer command line."""

import json

import pytest
import yaml
from click.testing import CliRunner

from clarity_scorer.cli import main
from clarity_scorer.schema import Role

CORE_ROLES = (Role.EXEC, Role.BUSINESS_OWNER, Role.TECH_OWNER)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def assessment_file(tmp_path, clear_answers):
    """A clear core assessment written as JSON."""
    path = tmp_path / "assessment.json"
    path.write_text(json.dumps({
        "variant": "CORE",
        "answers": [a.model_dump(mode="json") for a in clear_answers(CORE_ROLES)],
    }), encoding="utf-8")
    return path


class TestEvaluateCommand:
    """Tests for `clarity-scorer evaluate`."""

    def test_json_output(self, runner, assessment_file):
        """JSON mode prints the full result and nothing else."""
        result = runner.invoke(main, ["evaluate", "-a", str(assessment_file), "-j"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["recommendation"]["value"] == "GO"
        assert data["variant"] == "CORE"

    def test_formatted_output(self, runner, assessment_file):
        """The default view shows the recommendation panel."""
        result = runner.invoke(main, ["evaluate", "-a", str(assessment_file), "-v"])

        assert result.exit_code == 0
        assert "Recommendation" in result.output
        assert "GO" in result.output

    def test_variant_override_and_output_file(self, runner, assessment_file, tmp_path):
        """Results can be saved and the declared variant overridden."""
        out = tmp_path / "result.json"
        result = runner.invoke(main, [
            "evaluate", "-a", str(assessment_file), "-V", "QUICK_CHECK", "-j", "-o", str(out),
        ])

        assert result.exit_code == 0
        assert json.loads(out.read_text(encoding="utf-8"))["variant"] == "QUICK_CHECK"

    def test_unreadable_assessment(self, runner, tmp_path):
        """A malformed file exits with an error."""
        path = tmp_path / "broken.json"
        path.write_text("[{", encoding="utf-8")

        result = runner.invoke(main, ["evaluate", "-a", str(path)])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_invalid_config_option(self, runner, assessment_file, tmp_path):
        """A broken --config file stops the command before evaluating."""
        config = tmp_path / "config.yaml"
        config.write_text(yaml.dump({"index_weights": {"D1": 0.9}}), encoding="utf-8")

        result = runner.invoke(main, [
            "--config", str(config), "evaluate", "-a", str(assessment_file),
        ])

        assert result.exit_code == 1

    def test_config_beside_assessment(self, runner, assessment_file, monkeypatch):
        """A clarity-config.yaml next to the assessment is applied."""
        monkeypatch.delenv("CLARITY_SCORER_CONFIG", raising=False)
        config = assessment_file.parent / "clarity-config.yaml"
        config.write_text(
            yaml.dump({"thresholds": {"index_low": 100.5, "index_high": 101}}),
            encoding="utf-8",
        )

        result = runner.invoke(main, ["evaluate", "-a", str(assessment_file), "-j"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["recommendation"]["value"] == "NO_GO"
        assert data["recommendation"]["primary_factor"] == "INDEX_LOW"

    def test_explicit_config_wins(self, runner, assessment_file, tmp_path, monkeypatch):
        """--config is used even when the assessment has its own config."""
        monkeypatch.delenv("CLARITY_SCORER_CONFIG", raising=False)
        (assessment_file.parent / "clarity-config.yaml").write_text(
            yaml.dump({"thresholds": {"index_low": 100.5, "index_high": 101}}),
            encoding="utf-8",
        )
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("{}\n", encoding="utf-8")

        result = runner.invoke(main, [
            "--config", str(explicit), "evaluate", "-a", str(assessment_file), "-j",
        ])

        assert result.exit_code == 0
        assert json.loads(result.output)["recommendation"]["value"] == "GO"


class TestValidateCommand:
    """Tests for `clarity-scorer validate`."""

    def test_valid_assessment(self, runner, assessment_file):
        """A clean assessment exits 0."""
        result = runner.invoke(main, ["validate", "-a", str(assessment_file)])

        assert result.exit_code == 0
        assert "Assessment valid" in result.output

    def test_invalid_assessment(self, runner, tmp_path):
        """Out-of-range answers exit 1 and are listed."""
        path = tmp_path / "assessment.json"
        path.write_text(json.dumps([
            {"question_id": "E1", "participant_id": "ceo", "role": "EXEC", "raw_value": 0},
        ]), encoding="utf-8")

        result = runner.invoke(main, ["validate", "-a", str(path)])

        assert result.exit_code == 1
        assert "Assessment invalid" in result.output

    def test_invalid_config_file(self, runner, tmp_path):
        """Config validation reports weight problems."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"thresholds": {"index_low": 90}}), encoding="utf-8")

        result = runner.invoke(main, ["validate", "-c", str(path)])

        assert result.exit_code == 1
        assert "Config invalid" in result.output


class TestInspectionCommands:
    """Tests for registry and variant listings."""

    def test_question_detail(self, runner):
        """A single question shows its options."""
        result = runner.invoke(main, ["questions", "--id", "B2"])

        assert result.exit_code == 0
        assert "Assumptions only" in result.output

    def test_unknown_question(self, runner):
        """Unknown ids exit with an error."""
        result = runner.invoke(main, ["questions", "--id", "Z1"])

        assert result.exit_code == 1

    def test_questions_by_role(self, runner):
        """Filtering by role lists only that role's questions."""
        result = runner.invoke(main, ["questions", "-r", "USER"])

        assert result.exit_code == 0
        assert "5 question(s)" in result.output

    def test_variants(self, runner):
        """The variant table renders."""
        result = runner.invoke(main, ["variants"])

        assert result.exit_code == 0


class TestInitConfigCommand:
    """Tests for `clarity-scorer init-config`."""

    def test_creates_and_protects_file(self, runner, tmp_path):
        """The file is written once and only replaced with --force."""
        out = tmp_path / "clarity-config.yaml"

        first = runner.invoke(main, ["init-config", "-o", str(out)])
        second = runner.invoke(main, ["init-config", "-o", str(out)])
        forced = runner.invoke(main, ["init-config", "-o", str(out), "--force"])

        assert first.exit_code == 0
        assert out.exists()
        assert second.exit_code == 1
        assert forced.exit_code == 0
        assert "index_weights" in yaml.safe_load(out.read_text(encoding="utf-8"))
