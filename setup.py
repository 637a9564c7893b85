# setup.py
from setuptools import setup, find_packages
from pathlib import Path
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="pdfsqueeze",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src", include=["pdfsqueeze", "pdfsqueeze.*"]),
    description="Shrink large PDFs by splitting, compressing and re-merging pages with Ghostscript in parallel.",
    long_description=long_description,
    long_description_content_type='text/markdown',
    python_requires=">=3.9",

    install_requires=[
        "PyMuPDF",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'pdfsqueeze=pdfsqueeze.cli:main',
        ],
    },
)
