from o365gen.pipeline import main

main()
