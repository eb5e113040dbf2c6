from setuptools import setup, find_packages

setup(
    name="devtrace",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    include_package_data=True,
    package_data={
        "devtrace.viewer": ["templates/*.html"],
    },
    install_requires=[
        "playwright>=1.40.0",
        "httpx>=0.25.0",
        "psutil>=5.9.0",
        "click>=8.1.7",
        "rich>=13.7.0",
        "fastapi>=0.110.0",
        "uvicorn[standard]>=0.24.0",
        "jinja2>=3.1.2",
        "pydantic>=2.5.0",
        "aiofiles>=23.2.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "devtrace=main:cli",
        ],
    },
    python_requires=">=3.10",
    author="devtrace",
    description="Unified server logs, browser console, network errors and screenshots for local web development",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
