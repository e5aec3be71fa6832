import setuptools


setuptools.setup(name='goalinf',
                 version='0.0.0',
                 description='A package for online goal inference of multiple agents using recursive Bayesian filtering.',
                 author='Jordan D. Larson, and Ryan W. Thomas, and Vaughn Weirens',
                 author_email='',
                 license='GPLv3',
                 packages=setuptools.find_packages('src'),
                 package_dir={"": "src"},
                 install_requires=['numpy', 'scipy', 'matplotlib'],
                 tests_require=['pytest', 'numpy'],
                 extras_require={'test': ['pytest']},
                 include_package_data=True,
                 zip_safe=False)
