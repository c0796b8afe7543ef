#!/usr/bin/env python3
# -*- coding: utf-8 -*-
#
# translation_utils.py - Utilities for translation support
#
import gettext
import os

# Default for system install
locale_dir = "/usr/share/locale"

# Allow packaged builds to point at a bundled catalog
if custom_dir := os.environ.get("SSHDECK_LOCALE_DIR"):
    if os.path.isdir(custom_dir):
        locale_dir = custom_dir

gettext.bindtextdomain("sshdeck", locale_dir)
gettext.textdomain("sshdeck")

# Export _ directly as the translation function
_ = gettext.gettext
