"""Configuration helpers shared across cfb-bench packages."""

from cfb_common.config.env import parse_bool_env, parse_float_env, parse_path_env

__all__ = ["parse_bool_env", "parse_float_env", "parse_path_env"]
