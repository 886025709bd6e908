from setuptools import setup, find_packages

setup(
    name='torchsne',
    version='0.1',
    description='Exact and Barnes-Hut t-SNE using PyTorch',

    # The project's main homepage.
    url='https://github.com/TorchDR/TorchDR',

    # Author details
    author='Hugues Van Assel, TorchSNE contributors',
    author_email='vanasselhugues@gmail.com',

    # Choose your license
    license='BSD 3-Clause',
    # What does your project relate to?
    keywords='dimensionality reduction, t-SNE, Barnes-Hut',

    packages=find_packages(),
    python_requires='>=3.9',
    install_requires=[
        'torch',
        'numpy',
        'scikit-learn',
        'tqdm',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
