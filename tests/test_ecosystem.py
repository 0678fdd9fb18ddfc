from telebox_setup.ecosystem import load_ecosystem, render_ecosystem, write_ecosystem


def test_render_produces_a_module_export(config):
    text = render_ecosystem(config)
    assert text.startswith("module.exports = {")
    assert text.rstrip().endswith("};")


def test_written_file_declares_service(config):
    path = write_ecosystem(config)
    apps = load_ecosystem(path)["apps"]
    assert len(apps) == 1
    app = apps[0]
    assert app["name"] == "telebox-test"
    assert app["script"] == "npm"
    assert app["args"] == "start"
    assert app["cwd"] == str(config.install_dir)
    assert app["out_file"] == str(config.install_dir / "logs" / "out.log")
    assert app["error_file"] == str(config.install_dir / "logs" / "error.log")
    assert app["merge_logs"] is True
    assert app["time"] is True
    assert app["autorestart"] is True
    assert app["max_restarts"] == 10
    assert app["min_uptime"] == "10s"
    assert app["restart_delay"] == 4000
    assert app["env"] == {"NODE_ENV": "production"}


def test_rewrite_replaces_previous_file(config):
    config.ecosystem_path.parent.mkdir(parents=True)
    config.ecosystem_path.write_text("module.exports = {stale: true};\n" * 50)

    write_ecosystem(config)
    first = config.ecosystem_path.read_text()
    write_ecosystem(config)
    second = config.ecosystem_path.read_text()

    assert first == second == render_ecosystem(config)
    assert second.count("module.exports") == 1
    leftovers = [p for p in config.install_dir.iterdir() if p.name.startswith(".ecosystem.")]
    assert leftovers == []
