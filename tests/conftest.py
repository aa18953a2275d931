from multirepo.config import MultirepoSettings

# Keep settings deterministic regardless of a developer's .env file.
# Tests that need specific values use monkeypatch.setenv().
MultirepoSettings.model_config["env_file"] = None
