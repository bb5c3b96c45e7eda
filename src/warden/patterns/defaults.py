"""Default detection rules.

Paths and agents are case-insensitive substrings.  Payload rules are
checked in the order listed and the first match wins, so broader rules
placed earlier shadow narrower ones further down (``xss_eval`` reports
``eval(base64_decode(...))`` before ``php_eval`` is reached).
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PayloadRule:
    """A labelled payload regex.

    Attributes
    ----------
    label:
        Reported in the violation reason as ``Payload match: <label>``.
    pattern:
        Regex with inline flags, e.g. ``(?i)<script[\\s>]``.
    """

    label: str
    pattern: str


DEFAULT_PATHS: tuple[str, ...] = (
    # CMS admin panels
    "wp-admin",
    "wp-login",
    "wp-config",
    "xmlrpc",
    "wordpress",
    "administrator",
    "typo3",
    "drupal",
    # Server/config file exposure
    ".env",
    ".git",
    ".svn",
    ".htaccess",
    ".htpasswd",
    "web.config",
    # Database tools
    "phpmyadmin",
    "pma",
    "adminer",
    "dbadmin",
    # Backups
    ".sql",
    ".bak",
    ".backup",
    ".old",
    ".orig",
    "config.bak",
    "dump.sql",
    # Traversal
    "../",
    "..%2f",
    "%2e%2e",
    # Web shells
    "shell.php",
    "c99.php",
    "r57.php",
    "webshell",
    # Extensions a routed application does not serve
    ".asp",
    ".aspx",
    ".jsp",
    ".cfm",
    ".cgi",
    ".php",
    # Diagnostics
    "phpinfo",
    "server-status",
    "server-info",
    # Installer and scan targets
    "setup.php",
    "install.php",
    "readme.html",
    "license.txt",
    "changelog",
)

DEFAULT_AGENTS: tuple[str, ...] = (
    # SQL injection scanners
    "sqlmap",
    "sqlninja",
    "havij",
    # Vulnerability scanners
    "nikto",
    "nessus",
    "acunetix",
    "netsparker",
    "burpsuite",
    "openvas",
    "w3af",
    "skipfish",
    "vega",
    # Network scanners
    "masscan",
    "nmap",
    "zmap",
    "zgrab",
    # Path brute-forcers
    "dirbuster",
    "dirb",
    "gobuster",
    "feroxbuster",
    "wfuzz",
    "ffuf",
    # Credential brute-forcers
    "hydra",
    "medusa",
    "patator",
    # Exploit frameworks
    "metasploit",
    "msfpayload",
    # Aggressive bots
    "massdeface",
    "blackwidow",
    "petalbot",
    "semrushbot",
    "ahrefsbot",
    "dotbot",
    # Generic HTTP libraries
    "python-requests",
    "go-http-client",
    "curl/",
    "libwww-perl",
    "lwp-trivial",
    "wget/",
)

DEFAULT_PAYLOADS: tuple[PayloadRule, ...] = (
    # SQL injection
    PayloadRule("sqli_union", r"(?i)UNION\s+(ALL\s+)?SELECT"),
    PayloadRule("sqli_select", r"(?i)SELECT\s+.+\s+FROM\s+"),
    PayloadRule("sqli_insert", r"(?i)INSERT\s+INTO\s+"),
    PayloadRule("sqli_drop", r"(?i)DROP\s+(TABLE|DATABASE|SCHEMA)\s+"),
    PayloadRule("sqli_sleep", r"(?i)SLEEP\s*\(\s*\d+\s*\)"),
    PayloadRule("sqli_benchmark", r"(?i)BENCHMARK\s*\("),
    PayloadRule("sqli_comment", r"(--\s|#\s|/\*.*\*/)"),
    PayloadRule("sqli_quote", r"(?i)'\s*(OR|AND)\s+'?\d"),
    # XSS
    PayloadRule("xss_script", r"(?i)<script[\s>]"),
    PayloadRule("xss_onerror", r"(?i)on(error|load|click|mouseover|focus|blur)\s*="),
    PayloadRule("xss_javascript", r"(?i)javascript\s*:"),
    PayloadRule("xss_vbscript", r"(?i)vbscript\s*:"),
    PayloadRule("xss_eval", r"(?i)eval\s*\("),
    PayloadRule("xss_expression", r"(?i)expression\s*\("),
    # Path traversal
    PayloadRule("traversal", r"\.\.(/|\\)"),
    PayloadRule("traversal_enc", r"(?i)%2e%2e(%2f|%5c)"),
    # Code execution
    PayloadRule("php_exec", r"(?i)(system|exec|passthru|popen|proc_open|shell_exec)\s*\("),
    PayloadRule("php_eval", r"(?i)eval\s*\(\s*base64_decode"),
    PayloadRule("php_assert", r"""(?i)assert\s*\(\s*[$'"]"""),
    # File inclusion
    PayloadRule("lfi", r"(?i)(/etc/passwd|/etc/shadow|/proc/self/environ)"),
    PayloadRule("rfi", r"(?i)(https?|ftp)://.+\.(php|txt|htm)"),
    # Command injection
    PayloadRule("cmd_injection", r"(?i)(\||;|`|&&|\$\()\s*(ls|cat|wget|curl|id|whoami|uname)"),
)
