"""
Prompt construction for audit requests.

Two modes:
- thorough: system prompt for one audit type plus language, framework and
  project context, code metrics and the JSON response schema
- fast: security + completeness only, critical problems only
"""

from typing import Dict, List, Optional

from ..core.models import AuditContext, AuditType, Environment, PromptContext


SYSTEM_PROMPTS: Dict[AuditType, str] = {
    AuditType.SECURITY: """You are a cybersecurity expert specializing in code security audits. Your role is to identify security vulnerabilities, unsafe coding practices, and potential attack vectors in code.

Focus on:
- OWASP Top 10 vulnerabilities (SQL injection, XSS, CSRF, etc.)
- Authentication and authorization flaws
- Input validation issues
- Cryptographic weaknesses
- Hardcoded secrets and credentials
- Unsafe deserialization
- Path traversal vulnerabilities
- Command injection risks
- Memory safety issues (for relevant languages)
- Insecure dependencies and imports

Provide specific, actionable security recommendations with severity levels.""",

    AuditType.COMPLETENESS: """You are a code quality expert specializing in identifying incomplete or unfinished code implementations. Your role is to find areas where code is incomplete, has placeholder content, or lacks proper implementation.

Focus on:
- TODO, FIXME, HACK comments
- Empty function bodies or placeholder implementations
- Missing error handling and exception management
- Unhandled edge cases and boundary conditions
- Missing validation for inputs and outputs
- Incomplete conditional branches
- Unused variables and dead code
- Missing return statements
- Incomplete type definitions
- Missing required configuration

Identify areas that could cause runtime failures or unexpected behavior.""",

    AuditType.PERFORMANCE: """You are a performance optimization expert specializing in identifying bottlenecks and inefficiencies in code. Your role is to find performance issues and suggest optimizations.

Focus on:
- Algorithmic complexity (O(n²), O(n³) issues)
- Memory management and potential leaks
- Database query optimization opportunities
- Inefficient loops and iterations
- Unnecessary computations and redundant operations
- Blocking operations in async contexts
- Resource-intensive operations without caching
- Large object creation in loops
- String concatenation inefficiencies
- Network request optimization opportunities
- File I/O optimization potential

Provide specific optimization strategies with estimated impact.""",

    AuditType.QUALITY: """You are a code quality expert specializing in maintainability, readability, and best practices. Your role is to identify code smells, violations of SOLID principles, and maintainability issues.

Focus on:
- Code smells (long methods, large classes, duplicate code)
- SOLID principle violations
- Poor naming conventions
- Complex conditional logic and deep nesting
- Lack of separation of concerns
- Tight coupling between components
- Missing or poor abstraction
- Inconsistent coding style
- Magic numbers and hardcoded values
- Poor error handling patterns
- Lack of documentation in complex areas

Suggest refactoring strategies that improve maintainability.""",

    AuditType.ARCHITECTURE: """You are a software architecture expert specializing in design patterns, system structure, and architectural best practices. Your role is to identify architectural issues and design pattern opportunities.

Focus on:
- Design pattern implementation opportunities
- Architectural anti-patterns
- Dependency management and inversion
- Component coupling and cohesion
- Layer separation and boundaries
- Single Responsibility Principle adherence
- Interface segregation opportunities
- Factory and builder pattern applications
- Observer pattern implementations
- Strategy pattern opportunities
- Dependency injection improvements

Recommend architectural improvements and pattern applications.""",

    AuditType.TESTING: """You are a testing expert specializing in identifying testability issues, missing test coverage areas, and testing anti-patterns. Your role is to find code that is difficult to test or has testing gaps.

Focus on:
- Testability issues (hard-to-mock dependencies)
- Missing test coverage for edge cases
- Race conditions in async code
- Non-deterministic behavior
- External dependency management in tests
- Test data setup complexity
- Assertion complexity and clarity
- Test isolation issues
- Mock and stub opportunities
- Integration vs unit testing boundaries
- Property-based testing opportunities

Suggest testing strategies and testability improvements.""",

    AuditType.DOCUMENTATION: """You are a documentation expert specializing in code documentation, API documentation, and compliance documentation. Your role is to identify missing or poor documentation.

Focus on:
- Missing API documentation
- Poor inline comments and code documentation
- Missing README and setup instructions
- Undocumented configuration options
- Missing examples and usage patterns
- Poor error message documentation
- Missing compliance documentation
- Unclear function and method documentation
- Missing type documentation
- Undocumented assumptions and constraints
- Missing architectural decision records

Suggest documentation improvements and standards compliance.""",

    AuditType.ALL: """You are a comprehensive code auditor with expertise in security, performance, quality, architecture, testing, and documentation. Your role is to perform a complete code audit across all dimensions.

Analyze the code for:
1. Security vulnerabilities and unsafe practices
2. Incomplete implementations and missing error handling
3. Performance bottlenecks and optimization opportunities
4. Code quality issues and maintainability problems
5. Architectural issues and design pattern opportunities
6. Testing gaps and testability issues
7. Documentation deficiencies

Prioritize findings by severity and impact, focusing on the most critical issues first.""",
}


LANGUAGE_SPECIFIC_PROMPTS: Dict[str, Dict[AuditType, str]] = {
    "javascript": {
        AuditType.SECURITY: """Pay special attention to:
- Prototype pollution vulnerabilities
- eval() and Function() usage
- DOM-based XSS in browser contexts
- Weak random number generation
- Insecure localStorage usage""",
        AuditType.PERFORMANCE: """Focus on:
- Event loop blocking operations
- Memory leaks with event listeners
- Bundle size optimization
- Inefficient DOM manipulations
- Async/await vs Promise performance""",
    },
    "typescript": {
        AuditType.QUALITY: """Consider TypeScript-specific issues:
- any type usage and type safety
- Missing type annotations
- Incorrect type assertions
- Union type handling
- Generic type constraints""",
        AuditType.COMPLETENESS: """Look for:
- Missing type definitions
- Incomplete interface implementations
- Unhandled union type cases
- Missing null/undefined checks""",
    },
    "python": {
        AuditType.SECURITY: """Focus on Python-specific security issues:
- pickle and eval() usage
- SQL injection in ORM usage
- Path traversal with os.path
- Command injection with subprocess
- Insecure deserialization""",
        AuditType.PERFORMANCE: """Consider:
- Global Interpreter Lock (GIL) implications
- List comprehensions vs loops
- Generator usage opportunities
- Memory usage with large data structures""",
    },
    "java": {
        AuditType.SECURITY: """Pay attention to:
- Deserialization vulnerabilities
- XML External Entity (XXE) attacks
- LDAP injection possibilities
- Insecure random number generation
- Thread safety issues""",
        AuditType.ARCHITECTURE: """Consider Java patterns:
- Singleton pattern thread safety
- Factory pattern implementations
- Dependency injection opportunities
- Interface segregation principle""",
    },
    "go": {
        AuditType.SECURITY: """Focus on Go-specific issues:
- Race conditions with goroutines
- Channel deadlocks
- Unsafe package usage
- Path traversal vulnerabilities
- Input validation in HTTP handlers""",
        AuditType.PERFORMANCE: """Consider:
- Goroutine leak prevention
- Channel buffer sizing
- Memory allocation patterns
- Garbage collection optimization""",
    },
    "rust": {
        AuditType.SECURITY: """Focus on:
- Unsafe block usage
- Memory safety violations
- Integer overflow potential
- FFI safety concerns""",
        AuditType.PERFORMANCE: """Consider:
- Zero-cost abstraction violations
- Unnecessary allocations
- Clone vs move semantics
- Iterator optimization opportunities""",
    },
}


FRAMEWORK_SPECIFIC_PROMPTS: Dict[str, Dict[AuditType, str]] = {
    "react": {
        AuditType.SECURITY: """React-specific security concerns:
- XSS through dangerouslySetInnerHTML
- State injection vulnerabilities
- Component prop validation
- Dependency injection security""",
        AuditType.PERFORMANCE: """React performance issues:
- Unnecessary re-renders
- Missing useMemo/useCallback
- Large component trees
- Key prop optimization
- Bundle splitting opportunities""",
        AuditType.QUALITY: """React code quality:
- Hook dependency arrays
- Component composition over inheritance
- Prop drilling issues
- State management patterns""",
    },
    "express": {
        AuditType.SECURITY: """Express.js security issues:
- Missing helmet middleware
- CORS misconfiguration
- Rate limiting absence
- Input validation gaps
- Session security""",
        AuditType.PERFORMANCE: """Express performance:
- Middleware optimization
- Database connection pooling
- Response compression
- Static file serving
- Caching strategies""",
    },
    "django": {
        AuditType.SECURITY: """Django security concerns:
- CSRF protection gaps
- SQL injection through raw queries
- XSS in template rendering
- Insecure settings.py configuration
- Authentication bypass""",
        AuditType.ARCHITECTURE: """Django patterns:
- Model-View-Template adherence
- Custom manager usage
- Signal handler patterns
- Middleware implementation""",
    },
    "spring": {
        AuditType.SECURITY: """Spring security issues:
- Authentication configuration
- Authorization annotation usage
- CSRF protection
- SQL injection in repositories
- Actuator endpoint exposure""",
        AuditType.ARCHITECTURE: """Spring patterns:
- Dependency injection best practices
- Bean lifecycle management
- AOP implementation
- Configuration management""",
    },
}

PROJECT_TYPE_GUIDANCE = {
    "api": "API service - focus on security, performance, and error handling",
    "web": "Web application - consider user experience and security",
    "cli": "Command-line tool - focus on error handling and user feedback",
    "library": "Reusable library - emphasize API design and documentation",
}

# Команда больше этого размера - акцент на сопровождаемости
LARGE_TEAM_SIZE = 5


BASE_SEVERITY_GUIDELINES = {
    "critical": "Immediate security risk or system failure potential",
    "high": "Significant impact on security, performance, or reliability",
    "medium": "Moderate impact on code quality or maintainability",
    "low": "Minor improvements or style issues",
    "info": "Informational suggestions or best practices",
}

TYPE_SEVERITY_GUIDELINES: Dict[AuditType, Dict[str, str]] = {
    AuditType.SECURITY: {
        "critical": "Remote code execution, SQL injection, authentication bypass",
        "high": "XSS, CSRF, sensitive data exposure, authorization flaws",
        "medium": "Weak cryptography, input validation gaps, session management",
        "low": "Security headers, secure coding practices",
    },
    AuditType.PERFORMANCE: {
        "critical": "O(n³) or worse complexity, memory leaks, infinite loops",
        "high": "O(n²) complexity, blocking operations, large memory usage",
        "medium": "Suboptimal algorithms, unnecessary computations",
        "low": "Minor optimizations, caching opportunities",
    },
    AuditType.COMPLETENESS: {
        "critical": "Missing error handling that could crash the system",
        "high": "TODO comments in critical paths, incomplete implementations",
        "medium": "Missing edge case handling, incomplete validation",
        "low": "Minor TODOs, documentation gaps",
    },
    AuditType.QUALITY: {
        "critical": "Code that severely violates coding standards",
        "high": "Poor code structure, major maintainability issues",
        "medium": "Code style violations, moderate maintainability issues",
        "low": "Minor style issues, small improvements",
    },
    AuditType.ARCHITECTURE: {
        "critical": "Design patterns that break system architecture",
        "high": "Significant architectural violations, coupling issues",
        "medium": "Moderate design issues, some coupling problems",
        "low": "Minor design improvements, refactoring opportunities",
    },
    AuditType.TESTING: {
        "critical": "Missing tests for critical functionality",
        "high": "Insufficient test coverage, missing integration tests",
        "medium": "Some missing unit tests, test quality issues",
        "low": "Minor test improvements, additional edge cases",
    },
    AuditType.DOCUMENTATION: {
        "critical": "Missing critical API documentation",
        "high": "Insufficient documentation for complex functionality",
        "medium": "Some missing documentation, unclear comments",
        "low": "Minor documentation improvements",
    },
    AuditType.ALL: {
        "critical": "Critical issues across all audit types",
        "high": "High priority issues across multiple areas",
        "medium": "Medium priority issues across multiple areas",
        "low": "Low priority issues across multiple areas",
    },
}


RESPONSE_SCHEMA = """{{
  "issues": [
    {{
      "line": number,
      "column": number (optional),
      "severity": "critical" | "high" | "medium" | "low" | "info",
      "type": "specific_issue_type",
      "category": "{category}",
      "title": "Brief description",
      "description": "Detailed explanation",
      "suggestion": "How to fix this issue",
      "confidence": 0.0-1.0,
      "fixable": boolean
    }}
  ]
}}"""

RESPONSE_RULES = """Important:
- Only return valid JSON
- Be specific about line numbers
- Provide actionable suggestions
- Rate confidence honestly (0.0 = uncertain, 1.0 = very confident)
- Focus on the most important issues for this audit type
- Include severity levels that match the actual risk/impact"""

FAST_MODE_INSTRUCTIONS = """FAST MODE: Focus only on CRITICAL security vulnerabilities and obvious incomplete implementations that could cause immediate failures.

Analyze the following {language} code for:
1. Critical security vulnerabilities (SQL injection, XSS, authentication bypass, etc.)
2. Incomplete implementations (TODOs, empty functions, missing error handling)

Return JSON with issues array focusing on high-impact problems only:"""


def get_severity_guidelines(audit_type: AuditType) -> Dict[str, str]:
    """Базовые критерии severity, уточнённые для типа аудита."""
    guidelines = dict(BASE_SEVERITY_GUIDELINES)
    guidelines.update(TYPE_SEVERITY_GUIDELINES.get(audit_type, {}))
    return guidelines


def _code_block(language: str, code: str) -> str:
    return f"Code to analyze:\n```{language}\n{code}\n```"


class PromptBuilder:
    """Построитель промптов для Ollama."""

    def build_thorough(self, context: PromptContext) -> str:
        """Полный промпт для одного типа аудита."""
        audit_type = context.audit_type
        sections = [SYSTEM_PROMPTS[audit_type]]
        sections.extend(self._guidance(context.language, context.context, [audit_type]))

        considerations = self._context_considerations(context.context)
        if considerations:
            sections.append("Context considerations:\n" + "\n".join(f"- {c}" for c in considerations))

        if context.code_metrics:
            metrics = context.code_metrics
            sections.append(
                "Code metrics:\n"
                f"- Lines of code: {metrics.line_count}\n"
                f"- Functions: {metrics.function_count}\n"
                f"- Complexity score: {metrics.complexity}"
            )

        guidelines = get_severity_guidelines(audit_type)
        sections.append(
            "Severity guidelines:\n" + "\n".join(f"- {level}: {text}" for level, text in guidelines.items())
        )

        if context.custom_prompts:
            sections.append("Additional instructions:\n" + "\n".join(context.custom_prompts))

        sections.append(
            f"Analyze the following {context.language} code and return a JSON response "
            f"with the following structure:\n\n{RESPONSE_SCHEMA.format(category=audit_type.value)}"
        )
        sections.append(_code_block(context.language, context.code))
        sections.append(RESPONSE_RULES)

        return "\n\n".join(sections)

    def build_fast(self, context: PromptContext) -> str:
        """Быстрый промпт: только критичные security и completeness проблемы."""
        focus = [AuditType.SECURITY, AuditType.COMPLETENESS]
        sections = [SYSTEM_PROMPTS[t] for t in focus]
        sections.extend(self._guidance(context.language, context.context, focus))

        if context.custom_prompts:
            sections.append("Additional instructions:\n" + "\n".join(context.custom_prompts))

        sections.append(FAST_MODE_INSTRUCTIONS.format(language=context.language))
        sections.append(RESPONSE_SCHEMA.format(category=context.audit_type.value))
        sections.append(_code_block(context.language, context.code))

        return "\n\n".join(sections)

    @staticmethod
    def _guidance(
        language: str,
        audit_context: Optional[AuditContext],
        audit_types: List[AuditType],
    ) -> List[str]:
        """Языковые, затем фреймворковые подсказки для каждого типа."""
        sections = []
        language_prompts = LANGUAGE_SPECIFIC_PROMPTS.get(language.lower(), {})
        framework_prompts = {}
        if audit_context and audit_context.framework:
            framework_prompts = FRAMEWORK_SPECIFIC_PROMPTS.get(audit_context.framework.lower(), {})

        for table in (language_prompts, framework_prompts):
            for audit_type in audit_types:
                if audit_type in table:
                    sections.append(table[audit_type])
        return sections

    @staticmethod
    def _context_considerations(audit_context: Optional[AuditContext]) -> List[str]:
        if audit_context is None:
            return []

        notes = []
        if audit_context.environment == Environment.PRODUCTION:
            notes.append("This is production code - prioritize security and reliability")
        if audit_context.performance_critical:
            notes.append("This is performance-critical code - focus on optimization opportunities")
        if audit_context.team_size and audit_context.team_size > LARGE_TEAM_SIZE:
            notes.append("Large team environment - emphasize maintainability and documentation")
        guidance = PROJECT_TYPE_GUIDANCE.get((audit_context.project_type or "").lower())
        if guidance:
            notes.append(guidance)
        return notes
