from setuptools import setup, find_packages

setup(
    name="translation-adapter",
    version="0.1.0",
    description="Link and reference adaptation for translated wiki articles",
    author="Article Translation Team",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "httpx>=0.25.0",
        "pyyaml>=6.0",
        "python-dotenv>=1.0.0",
        "jinja2>=3.1.2",
        "pydantic>=2.0.0",
        "lxml>=4.9.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
        ],
    },
    python_requires=">=3.9",
    entry_points={
        "console_scripts": [
            "adapt-translation=translation_adapter.cli:main",
        ],
    },
)
