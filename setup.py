"""Setup for Prompt Optimizer."""

from setuptools import setup, find_packages

setup(
    name="prompt-optimizer",
    version="0.1.0",
    description="Browser workbench for optimizing and iterating on LLM prompts",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "gradio>=6.0.0",
        "openai>=1.0.0",
        "pydantic>=2.0",
        "pyyaml>=6.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            "prompt-optimizer=prompt_optimizer.app:main",
        ],
    },
    python_requires=">=3.10",
)
