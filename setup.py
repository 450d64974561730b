from setuptools import setup, find_packages

setup(
    name="fairscore",
    version="1.0.0",
    description="FairScore: group fairness and calibration analysis for clinical risk scores",
    author="Your Name",
    packages=find_packages(exclude=("tests", "paper")),
    include_package_data=True,
    install_requires=[
        "numpy>=1.22",
        "pandas>=1.5",
        "scipy>=1.8",
        "scikit-learn>=1.1",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.9",
)
