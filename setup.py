from setuptools import setup, find_packages

setup(
    name="page-capture",
    version="0.1.0",
    description="Capture screenshots and PDFs of web pages with a headless browser",
    author="Page Capture Team",
    packages=find_packages(),
    install_requires=[
        "playwright>=1.40.0",
        "pydantic>=2.0.0",
        "psutil>=5.9.0",
        "Pillow>=9.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.0.0",
        ],
    },
    python_requires=">=3.9",
)
