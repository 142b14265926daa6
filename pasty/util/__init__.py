# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Utility package providing configuration helpers for pasty.

This package includes:
- Environment loading with the PASTY_ prefix
- JSON and YAML configuration files
- Typed configuration lookups
- Duration string parsing ('30s', '5m', '2h', '1d')
- Schema validation for configuration dictionaries
"""

from .config import (
    ENV_PREFIX, load_config_from_env, get_config_value,
    parse_duration_string, validate_config, load_config_file
)

__all__ = [
    'ENV_PREFIX', 'load_config_from_env', 'get_config_value',
    'parse_duration_string', 'validate_config', 'load_config_file',
]
