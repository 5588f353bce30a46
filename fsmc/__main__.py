# fsmc/__main__.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from fsmc.cli import main

main()
