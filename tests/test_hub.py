import pytest

from outofcontext.core.errors import ModelResolutionError
from outofcontext.integrations import hub
from outofcontext.integrations.hub import repo_id_from_spec, resolve_model


@pytest.fixture
def fake_download(monkeypatch):
    calls = []

    def _download(repo_id, revision=None, local_dir=None, allow_patterns=None):
        calls.append({"repo_id": repo_id, "revision": revision, "local_dir": local_dir})
        (hub.Path(local_dir) / "config.json").write_text("{}", encoding="utf-8")
        return local_dir

    monkeypatch.setattr(hub, "snapshot_download", _download)
    return calls


@pytest.mark.parametrize(
    "spec, expected",
    [
        ("HuggingFaceTB/SmolLM2-135M-Instruct", "HuggingFaceTB/SmolLM2-135M-Instruct"),
        ("https://huggingface.co/org/model-1.5", "org/model-1.5"),
        ("https://huggingface.co/org/model/tree/main", "org/model"),
        ("./my-model", None),
        ("just-a-name", None),
        ("a/b/c", None),
    ],
)
def test_repo_id_from_spec(spec, expected):
    assert repo_id_from_spec(spec) == expected


def test_existing_model_dir_is_used_in_place(tmp_path, fake_download):
    (tmp_path / "config.json").write_text("{}", encoding="utf-8")
    assert resolve_model(str(tmp_path)) == tmp_path
    assert fake_download == []


def test_existing_path_without_config_is_rejected(tmp_path, fake_download):
    with pytest.raises(ModelResolutionError):
        resolve_model(str(tmp_path))


def test_unrecognised_spec_is_rejected(tmp_path, monkeypatch, fake_download):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ModelResolutionError):
        resolve_model("no such model")


def test_repo_id_downloads_into_model_dir(tmp_path, monkeypatch, fake_download):
    monkeypatch.chdir(tmp_path)
    path = resolve_model("org/tiny", tmp_path / "models", revision="main")
    assert path == tmp_path / "models" / "tiny"
    assert (path / "config.json").is_file()
    assert fake_download == [
        {"repo_id": "org/tiny", "revision": "main", "local_dir": str(tmp_path / "models" / "tiny")}
    ]


def test_previous_download_is_reused(tmp_path, monkeypatch, fake_download):
    monkeypatch.chdir(tmp_path)
    resolve_model("https://huggingface.co/org/tiny", tmp_path / "models")
    resolve_model("org/tiny", tmp_path / "models")
    assert len(fake_download) == 1


def test_download_failure_is_wrapped(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    def _fail(**kwargs):
        raise OSError("network down")

    monkeypatch.setattr(hub, "snapshot_download", _fail)
    with pytest.raises(ModelResolutionError) as err:
        resolve_model("org/tiny", tmp_path / "models")
    assert isinstance(err.value.__cause__, OSError)
