from pathlib import Path

from tcorpus.core.config import load_corpus_config


def test_corpus_config_sample_loads() -> None:
    """Ensure the shipped corpus YAML matches the CorpusConfig schema."""

    repo_root = Path(__file__).resolve().parents[1]
    sample_path = repo_root / "config" / "corpus.yaml"

    config = load_corpus_config(sample_path)

    assert config.root == (repo_root / "tests" / "fixtures" / "kotlin_tutorial").resolve()
    assert config.subject_language == "kotlin"
    assert "README.md" in config.toc_files
    assert "next steps" in config.sections.next
    assert config.code.bracket_languages == ["kotlin", "java"]


def test_fixture_config_loads() -> None:
    fixture = Path(__file__).resolve().parent / "fixtures" / "kotlin_tutorial"

    config = load_corpus_config(fixture / "corpus.yaml")

    assert config.root == fixture.resolve()
    assert config.exclude == ["README.md"]
