# prompt_wizard/base_utils.py
import re

from prompt_wizard.db_helpers import logger


class BaseUtils():

    # -----------------------
    # General Utils
    # -----------------------

    def color_print(self, text, color=None):
        COLOR_CODES = {
            'red': '31', 'green': '32', 'yellow': '33', 'blue': '34', 'magenta': '35',
            'cyan': '36', 'bright_red': '91', 'bright_green': '92', 'bright_yellow': '93',
        }
        if color and color.lower() in COLOR_CODES:
            text = f"\033[{COLOR_CODES[color.lower()]}m{text}\033[0m"
        logger.info(str(text))

    def clean_triple_backticks(self, code) -> str:
        pattern = r'```[a-zA-Z]*\n?|```\n?'
        return re.sub(pattern, '', code or "").strip()

    def unsafe_string_format(self, dest_string, **kwargs):
        """
        Replaces only the {KEY} placeholders named in kwargs and leaves every
        other brace untouched, so templates can embed JSON or Markdown safely.
        """
        missing_keys = []

        def replacer(match):
            key = match.group(1)
            if key in kwargs:
                return str(kwargs[key])
            missing_keys.append(key)
            return match.group(0)

        result = re.sub(r'\{(\w+)\}', replacer, dest_string)
        if missing_keys:
            logger.debug(f"Unfilled placeholders in template: {', '.join(missing_keys)}")
        return result
