"""Core infrastructure package for shared application functionality.

This package provides the foundational components used by the settlement
engine:

- **config**: Centralized configuration management with environment support
- **constants**: Time, money and tax constants
- **context**: Settlement run context for log correlation
- **exceptions**: Structured exception hierarchy with error codes
- **logging**: Structured logging with Loguru
- **types**: Type aliases for better code clarity
"""
