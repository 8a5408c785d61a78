"""
Configuration loading
Reads the YAML settings shared by the simulator components
"""

import os

import yaml

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), 'config.yaml')


def load_config(config_path=None):
    """
    Load simulator configuration

    The bundled config.yaml is always read first. A user file only has to
    name the keys it changes; its sections are merged over the defaults.

    Args:
        config_path: Optional path to a YAML file with overrides

    Returns:
        dict: section name -> settings dict
    """
    with open(DEFAULT_CONFIG_PATH, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f)

    if config_path is None:
        return config

    with open(config_path, 'r', encoding='utf-8') as f:
        overrides = yaml.safe_load(f) or {}

    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section] = {**config[section], **values}
        else:
            config[section] = values

    return config
