from kitlock.cli.util.runtime import build_project_image, load_config, print_yaml, run

__all__ = ["build_project_image", "load_config", "print_yaml", "run"]
