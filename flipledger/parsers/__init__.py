from .quantity import format_gp, parse_gp, parse_quantity
from .text_lines import parse_lines, sanitize_name, is_noise, EXTRACTION_STRATEGIES
