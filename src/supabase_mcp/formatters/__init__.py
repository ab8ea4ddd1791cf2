"""Output formatters for supabase-mcp."""

from supabase_mcp.formatters.base import Formatter, FormatterRegistry, registry
from supabase_mcp.formatters.json import JSONFormatter
from supabase_mcp.formatters.markdown import MarkdownFormatter
from supabase_mcp.formatters.table import TableFormatter
